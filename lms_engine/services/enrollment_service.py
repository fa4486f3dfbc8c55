import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lms_engine.errors import ConflictError, InvalidInputError, NotFoundError, PreconditionError
from lms_engine.models import Course, Enrollment

logger = logging.getLogger(__name__)


def find_enrollment(session: Session, student_id: int, course_id: int) -> Optional[Enrollment]:
    stmt = select(Enrollment).where(
        (Enrollment.student_id == student_id) & (Enrollment.course_id == course_id)
    )
    return session.exec(stmt).first()


def enroll(session: Session, student_id: int, course_id: int) -> Enrollment:
    """Create the (student, course) enrollment; a pair can only be enrolled once."""
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    if not course.is_published:
        raise InvalidInputError("Course is not available for enrollment")
    if find_enrollment(session, student_id, course_id):
        raise ConflictError("Already enrolled in this course")

    enrollment = Enrollment(student_id=student_id, course_id=course_id)
    session.add(enrollment)
    try:
        session.commit()
    except IntegrityError:
        # A concurrent request enrolled the same pair first
        session.rollback()
        raise ConflictError("Already enrolled in this course")
    session.refresh(enrollment)

    logger.info("Student %s enrolled in course %s", student_id, course_id)
    return enrollment


def get_enrollment(
    session: Session, enrollment_id: int, student_id: Optional[int] = None
) -> Enrollment:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    if student_id is not None and enrollment.student_id != student_id:
        raise PreconditionError("Not authorized")
    return enrollment


def list_enrollments(session: Session, student_id: int) -> List[Enrollment]:
    return session.exec(
        select(Enrollment)
        .where(Enrollment.student_id == student_id)
        .order_by(Enrollment.enrolled_at.desc())
    ).all()
