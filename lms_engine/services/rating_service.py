"""Course rating aggregation.

A course's ``rating`` and ``rating_count`` are always rebuilt from every
non-null ``Enrollment.rating`` of the course, never adjusted incrementally.
The course row is locked while rescanning where the backend supports row
locks, and every rescan writes a new ``Course.version`` guarded by the one it
read. A rescan that raced another rating write is redone on fresh data, so
concurrent rescans of the same course end in the aggregate of all ratings.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlmodel import Session, select

from lms_engine.config import RATING_MAX, RATING_MIN
from lms_engine.database import retry_on_stale
from lms_engine.errors import InvalidInputError, NotFoundError, PreconditionError
from lms_engine.models import Course, Enrollment
from lms_engine.schemas import CourseRatingSummary
from lms_engine.utils import round_one_decimal, sanitize_comment, utcnow

logger = logging.getLogger(__name__)


def validate_rating(rating) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidInputError(
            f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}"
        )
    if rating < RATING_MIN or rating > RATING_MAX:
        raise InvalidInputError(
            f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}"
        )
    return rating


def aggregate_ratings(ratings: Iterable[int]) -> Tuple[float, int]:
    """Return ``(mean rounded half-up to one decimal, count)``; ``(0.0, 0)`` if empty."""
    values = list(ratings)
    if not values:
        return 0.0, 0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return round_one_decimal(mean), len(values)


def _lock_course(session: Session, course_id: int) -> Course:
    course = session.exec(
        select(Course).where(Course.id == course_id).with_for_update()
    ).first()
    if not course:
        raise NotFoundError("Course not found")
    return course


def _rescan(session: Session, course: Course) -> CourseRatingSummary:
    ratings = session.exec(
        select(Enrollment.rating).where(
            (Enrollment.course_id == course.id) & (Enrollment.rating.is_not(None))
        )
    ).all()
    course.rating, course.rating_count = aggregate_ratings(ratings)
    # Bumped on every rescan, even when the aggregate is unchanged
    course.version += 1
    session.add(course)
    return CourseRatingSummary(
        course_id=course.id, rating=course.rating, rating_count=course.rating_count
    )


def rating_summary(session: Session, course_id: int) -> CourseRatingSummary:
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    return CourseRatingSummary(
        course_id=course.id, rating=course.rating, rating_count=course.rating_count
    )


def rate_course(
    session: Session,
    enrollment_id: int,
    rating,
    comment: Optional[str] = None,
    student_id: Optional[int] = None,
) -> CourseRatingSummary:
    """Set or overwrite the enrollment's rating, then rebuild the course aggregate.

    Raises:
        InvalidInputError: rating is not an integer in [1, 5]
        NotFoundError: enrollment or course does not exist
        PreconditionError: the enrollment belongs to another student
        ConflictError: the course kept changing through every retry
    """
    rating = validate_rating(rating)
    comment = sanitize_comment(comment)

    def apply() -> CourseRatingSummary:
        enrollment = session.get(Enrollment, enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        if student_id is not None and enrollment.student_id != student_id:
            raise PreconditionError("Not authorized")

        course = _lock_course(session, enrollment.course_id)

        enrollment.rating = rating
        enrollment.rating_comment = comment
        enrollment.rated_at = utcnow()
        enrollment.version += 1
        session.add(enrollment)
        session.flush()

        summary = _rescan(session, course)
        session.commit()
        return summary

    summary = retry_on_stale(session, apply, f"Course rating (enrollment {enrollment_id})")
    logger.info(
        "Enrollment %s rated course %s with %s; course rating %s over %s ratings",
        enrollment_id, summary.course_id, rating, summary.rating, summary.rating_count,
    )
    return summary


def recalculate_course_rating(session: Session, course_id: int) -> CourseRatingSummary:
    """Rebuild a course's rating fields from its enrollments. Safe to repeat."""

    def apply():
        course = _lock_course(session, course_id)
        previous = (course.rating, course.rating_count)
        summary = _rescan(session, course)
        session.commit()
        return previous, summary

    previous, summary = retry_on_stale(session, apply, f"Course {course_id}")
    if previous != (summary.rating, summary.rating_count):
        logger.warning(
            "Course %s rating drifted: %s/%s repaired to %s/%s",
            course_id, previous[0], previous[1], summary.rating, summary.rating_count,
        )
    else:
        logger.info("Course %s rating verified: %s over %s ratings", course_id, *previous)
    return summary
