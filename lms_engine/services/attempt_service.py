"""Recording graded quiz attempts.

The guards (quiz published, student enrolled) live here, outside the pure
grading function, and are read in the same transaction that inserts the
attempt row.
"""

import logging
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from lms_engine.errors import (
    InvalidInputError,
    NotEnrolledError,
    NotFoundError,
    QuizUnavailableError,
)
from lms_engine.models import Enrollment, Quiz, QuizAttempt
from lms_engine.schemas import GradedResult, SubmittedAnswer
from lms_engine.services.grading import grade_attempt
from lms_engine.services.quiz_service import find_quiz_for_update, list_questions
from lms_engine.utils import utcnow

logger = logging.getLogger(__name__)


def _find_active_enrollment(
    session: Session, student_id: int, course_id: int
) -> Optional[Enrollment]:
    stmt = (
        select(Enrollment)
        .where(
            (Enrollment.student_id == student_id)
            & (Enrollment.course_id == course_id)
            & (Enrollment.is_active == True)  # noqa: E712
        )
        .with_for_update(read=True)
    )
    return session.exec(stmt).first()


def check_can_attempt(session: Session, student_id: int, quiz_id: int) -> Quiz:
    """Return the quiz if ``student_id`` may submit an attempt for it.

    Raises:
        NotFoundError: the quiz does not exist
        QuizUnavailableError: the quiz is not published
        NotEnrolledError: no active enrollment in the quiz's course
    """
    quiz = find_quiz_for_update(session, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    if not quiz.is_published:
        logger.warning("Student %s submitted to unpublished quiz %s", student_id, quiz_id)
        raise QuizUnavailableError()
    if not _find_active_enrollment(session, student_id, quiz.course_id):
        logger.warning(
            "Student %s is not enrolled in course %s (quiz %s)",
            student_id, quiz.course_id, quiz_id,
        )
        raise NotEnrolledError()
    return quiz


def record_attempt(
    session: Session,
    student_id: int,
    quiz: Quiz,
    graded: GradedResult,
    time_spent: int = 0,
) -> QuizAttempt:
    """Insert one immutable attempt row built from ``graded``.

    ``total_points`` is copied from the graded result and never recomputed
    afterwards, even if the quiz's questions change later.
    """
    if time_spent is None:
        time_spent = 0
    if time_spent < 0:
        raise InvalidInputError("time_spent cannot be negative")

    attempt = QuizAttempt(
        student_id=student_id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        answers=[a.model_dump(by_alias=True) for a in graded.answers],
        score=graded.score,
        total_points=graded.total_points,
        percentage=graded.percentage,
        passed=graded.passed,
        submitted_at=utcnow(),
        time_spent=time_spent,
    )
    session.add(attempt)
    session.commit()
    session.refresh(attempt)

    logger.info(
        "Recorded attempt %s: student=%s quiz=%s score=%s/%s (%s%%) passed=%s",
        attempt.id, student_id, quiz.id, attempt.score, attempt.total_points,
        attempt.percentage, attempt.passed,
    )
    return attempt


def submit_attempt(
    session: Session,
    student_id: int,
    quiz_id: int,
    answers: Sequence[SubmittedAnswer],
    time_spent: int = 0,
) -> QuizAttempt:
    """Check preconditions, grade the answers and record the attempt."""
    if answers is None:
        raise InvalidInputError("answers must be a list")
    if time_spent is not None and time_spent < 0:
        raise InvalidInputError("time_spent cannot be negative")

    quiz = check_can_attempt(session, student_id, quiz_id)
    questions = list_questions(session, quiz.id)
    graded = grade_attempt(quiz, questions, answers)
    return record_attempt(session, student_id, quiz, graded, time_spent)


def list_attempts(
    session: Session, quiz_id: int, student_id: Optional[int] = None
) -> List[QuizAttempt]:
    """Attempts for a quiz, newest first, optionally limited to one student."""
    stmt = select(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id)
    if student_id is not None:
        stmt = stmt.where(QuizAttempt.student_id == student_id)
    stmt = stmt.order_by(QuizAttempt.submitted_at.desc(), QuizAttempt.id.desc())
    return session.exec(stmt).all()
