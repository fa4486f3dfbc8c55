"""Enrollment routes: enrolling, lesson completion and course rating."""

from typing import List

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from lms_engine.database import get_session
from lms_engine.deps import require_login, require_role
from lms_engine.models import User
from lms_engine.schemas import (
    CourseRatingSummary,
    EnrollmentCheck,
    EnrollmentRead,
    LessonCompleteIn,
    RatingIn,
)
from lms_engine.services import enrollment_service, progress_service, rating_service

router = APIRouter()


@router.post("/{course_id}", status_code=201, response_model=EnrollmentRead)
def api_enroll(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    enrollment = enrollment_service.enroll(session, current_user.id, course_id)
    return EnrollmentRead.model_validate(enrollment)


@router.get("/my-enrollments", response_model=List[EnrollmentRead])
def api_my_enrollments(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    enrollments = enrollment_service.list_enrollments(session, current_user.id)
    return [EnrollmentRead.model_validate(e) for e in enrollments]


@router.get("/check/{course_id}", response_model=EnrollmentCheck)
def api_check_enrollment(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    enrollment = enrollment_service.find_enrollment(session, current_user.id, course_id)
    if not enrollment:
        return EnrollmentCheck(is_enrolled=False)
    return EnrollmentCheck(
        is_enrolled=True, enrollment=EnrollmentRead.model_validate(enrollment)
    )


@router.get("/{enrollment_id}", response_model=EnrollmentRead)
def api_get_enrollment(
    enrollment_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    student_id = current_user.id if current_user.role == "student" else None
    enrollment = enrollment_service.get_enrollment(session, enrollment_id, student_id)
    return EnrollmentRead.model_validate(enrollment)


@router.post("/{enrollment_id}/complete-lesson", response_model=EnrollmentRead)
def api_complete_lesson(
    enrollment_id: int,
    payload: LessonCompleteIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    """Mark a lesson complete. Repeating the call changes nothing."""
    enrollment = progress_service.mark_lesson_complete(
        session, enrollment_id, payload.lesson_id, student_id=current_user.id
    )
    return EnrollmentRead.model_validate(enrollment)


@router.post("/{enrollment_id}/rate", response_model=CourseRatingSummary)
def api_rate_course(
    enrollment_id: int,
    payload: RatingIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    return rating_service.rate_course(
        session,
        enrollment_id,
        payload.rating,
        comment=payload.comment,
        student_id=current_user.id,
    )
