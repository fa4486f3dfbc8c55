"""FastAPI entrypoint for the LMS assessment & progress engine."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lms_engine.database import create_db_and_tables
from lms_engine.errors import EngineError
from lms_engine.logging_config import configure_logging
from lms_engine.routers import courses as courses_router_module
from lms_engine.routers import enrollments as enrollments_router_module
from lms_engine.routers import quizzes as quizzes_router_module

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="LMS Assessment & Progress Engine")


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Translate service-layer errors into JSON responses."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning(
            "%s %s rejected (%s): %s",
            request.method, request.url.path, exc.status_code, exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Routers
app.include_router(quizzes_router_module.router, prefix="/quizzes", tags=["quizzes"])
app.include_router(
    enrollments_router_module.router, prefix="/enrollments", tags=["enrollments"]
)
app.include_router(courses_router_module.router, prefix="/courses", tags=["courses"])


@app.get("/")
def root():
    return {"message": "LMS Assessment & Progress Engine"}


@app.on_event("startup")
def on_startup():
    """Initialize database schema."""
    create_db_and_tables()
