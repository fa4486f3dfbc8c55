"""Lesson completion and course progress for an enrollment."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from lms_engine.database import retry_on_stale
from lms_engine.errors import InvalidInputError, NotFoundError, PreconditionError
from lms_engine.models import Enrollment, Lesson
from lms_engine.utils import percent_of, utcnow

logger = logging.getLogger(__name__)


def has_completed(enrollment: Enrollment, lesson_id: int) -> bool:
    return any(
        entry.get("lessonId") == lesson_id
        for entry in enrollment.completed_lessons or []
    )


def compute_progress(completed_count: int, course_lesson_count: int) -> int:
    """Percentage of lessons completed, clamped to 100.

    A course without lessons stays at 0 and can never be completed this way.
    """
    if course_lesson_count <= 0:
        return 0
    return min(100, percent_of(completed_count, course_lesson_count))


def complete_lesson(
    enrollment: Enrollment,
    lesson_id: int,
    course_lesson_count: int,
    now: Optional[datetime] = None,
) -> Enrollment:
    """Record ``lesson_id`` as completed on ``enrollment`` and recompute progress.

    Completing an already completed lesson leaves the enrollment untouched.
    Once ``completed`` is set it is never cleared here.
    """
    if has_completed(enrollment, lesson_id):
        return enrollment

    now = now or utcnow()
    # Assign a new list so the JSON column is flagged as changed
    enrollment.completed_lessons = [
        *(enrollment.completed_lessons or []),
        {"lessonId": lesson_id, "completedAt": now.isoformat()},
    ]
    enrollment.progress = compute_progress(
        len(enrollment.completed_lessons), course_lesson_count
    )
    if enrollment.progress == 100 and not enrollment.completed:
        enrollment.completed = True
        enrollment.completed_at = now
    return enrollment


def count_course_lessons(session: Session, course_id: int) -> int:
    return session.exec(
        select(func.count()).select_from(Lesson).where(Lesson.course_id == course_id)
    ).one()


def mark_lesson_complete(
    session: Session,
    enrollment_id: int,
    lesson_id: int,
    student_id: Optional[int] = None,
) -> Enrollment:
    """Complete a lesson for a stored enrollment as one atomic update.

    The enrollment row is locked where the backend supports it, and the
    UPDATE is guarded by the row's ``version``. A completion that raced
    another write of the same enrollment is re-applied on fresh data, so
    concurrent completions never drop each other's entries.

    Raises:
        NotFoundError: enrollment or lesson does not exist
        PreconditionError: the enrollment belongs to another student
        ConflictError: the enrollment kept changing through every retry
    """
    if lesson_id is None:
        raise InvalidInputError("Lesson ID is required")

    def apply() -> Enrollment:
        enrollment = session.exec(
            select(Enrollment).where(Enrollment.id == enrollment_id).with_for_update()
        ).first()
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        if student_id is not None and enrollment.student_id != student_id:
            raise PreconditionError("Not authorized")

        lesson = session.get(Lesson, lesson_id)
        if not lesson or lesson.course_id != enrollment.course_id:
            raise NotFoundError("Lesson not found in this course")

        if has_completed(enrollment, lesson_id):
            # Nothing to write; release the row lock
            session.rollback()
            session.refresh(enrollment)
            return enrollment

        lesson_count = count_course_lessons(session, enrollment.course_id)
        was_completed = enrollment.completed
        complete_lesson(enrollment, lesson_id, lesson_count)
        enrollment.version += 1
        session.add(enrollment)
        session.commit()
        session.refresh(enrollment)

        logger.info(
            "Enrollment %s completed lesson %s: progress=%s%%",
            enrollment.id, lesson_id, enrollment.progress,
        )
        if enrollment.completed and not was_completed:
            logger.info("Enrollment %s completed course %s", enrollment.id, enrollment.course_id)
        return enrollment

    return retry_on_stale(session, apply, f"Enrollment {enrollment_id}")
