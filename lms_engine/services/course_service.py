"""Course lookup and instructor ownership checks."""

import logging

from sqlmodel import Session

from lms_engine.errors import NotFoundError, PreconditionError
from lms_engine.models import Course, User

logger = logging.getLogger(__name__)


def get_course(session: Session, course_id: int) -> Course:
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    return course


def check_course_owner(session: Session, course_id: int, user: User) -> Course:
    """Return the course if ``user`` may manage it.

    Admins manage every course; instructors only the courses they teach.
    """
    course = get_course(session, course_id)
    if user.role != "admin" and course.instructor_id != user.id:
        logger.warning("User %s is not the instructor of course %s", user.id, course_id)
        raise PreconditionError("Not authorized")
    return course
