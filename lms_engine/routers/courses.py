"""Course rating routes."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from lms_engine.database import get_session
from lms_engine.deps import require_login, require_role
from lms_engine.models import User
from lms_engine.schemas import CourseRatingSummary
from lms_engine.services import course_service, rating_service

router = APIRouter()


@router.get("/{course_id}/rating", response_model=CourseRatingSummary)
def api_course_rating(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    return rating_service.rating_summary(session, course_id)


@router.post("/{course_id}/rating/recalculate", response_model=CourseRatingSummary)
def api_recalculate_rating(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["instructor", "admin"])),
):
    """Rebuild the stored rating from all enrollments of the course."""
    course_service.check_course_owner(session, course_id, current_user)
    return rating_service.recalculate_course_rating(session, course_id)
