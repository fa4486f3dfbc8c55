"""Database configuration and session dependency."""

import logging
from typing import Callable, Iterator, TypeVar

from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, SQLModel, create_engine

from lms_engine.config import DATABASE_URL, SQL_ECHO, WRITE_RETRIES
from lms_engine.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)


def create_db_and_tables() -> None:
    """Create database tables based on SQLModel metadata."""
    # Import models so their tables are registered on the metadata
    from lms_engine import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Iterator[Session]:
    """FastAPI dependency that yields a database session."""
    with Session(engine) as session:
        yield session


def retry_on_stale(
    session: Session, operation: Callable[[], T], what: str, retries: int = WRITE_RETRIES
) -> T:
    """Run ``operation`` and retry it when a versioned row changed underneath it.

    ``operation`` must re-read everything it writes, since the session is
    rolled back before each retry.
    """
    for attempt in range(1, retries + 1):
        try:
            return operation()
        except StaleDataError:
            session.rollback()
            logger.warning("Concurrent update of %s, retry %d/%d", what, attempt, retries)
    raise ConflictError(f"{what} is being modified concurrently, try again")
