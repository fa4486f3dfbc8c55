"""Quiz authoring: creating quizzes and keeping ``total_points`` in sync."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete
from sqlmodel import Session, select

from lms_engine.errors import InvalidInputError, NotFoundError
from lms_engine.models import Course, Enrollment, Question, Quiz
from lms_engine.schemas import (
    MultipleChoiceQuestionIn,
    ShortAnswerQuestionIn,
    TrueFalseQuestionIn,
)
from lms_engine.utils import sanitize_prompt, utcnow

logger = logging.getLogger(__name__)

QuestionPayload = MultipleChoiceQuestionIn | TrueFalseQuestionIn | ShortAnswerQuestionIn


def get_quiz(session: Session, quiz_id: int) -> Quiz:
    quiz = session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


def list_questions(session: Session, quiz_id: int) -> List[Question]:
    return session.exec(
        select(Question).where(Question.quiz_id == quiz_id).order_by(Question.position)
    ).all()


def _build_questions(payloads: Sequence[QuestionPayload]) -> List[Question]:
    """Turn validated payloads into unsaved questions numbered 1..n."""
    questions = []
    for position, payload in enumerate(payloads, start=1):
        prompt = sanitize_prompt(payload.prompt)
        if not prompt:
            raise InvalidInputError(
                f"Question {position}: prompt cannot be empty after sanitization"
            )
        questions.append(
            Question(
                position=position,
                prompt=prompt,
                type=payload.type,
                options=[opt.model_dump(by_alias=True) for opt in payload.options],
                correct_answer=payload.correct_answer,
                points=payload.points,
            )
        )
    return questions


def _validate_settings(passing_score: int, time_limit: Optional[int]) -> None:
    if passing_score < 0 or passing_score > 100:
        raise InvalidInputError("passing_score must be between 0 and 100")
    if time_limit is not None and time_limit < 1:
        raise InvalidInputError("time_limit must be a positive number of minutes")


def create_quiz(
    session: Session,
    course_id: int,
    title: str,
    questions: Sequence[QuestionPayload] = (),
    description: str = "",
    passing_score: int = 60,
    time_limit: Optional[int] = None,
    is_published: bool = False,
) -> Quiz:
    """Create a quiz with its questions numbered 1..n.

    ``total_points`` is set to the sum of the question points.
    """
    if not session.get(Course, course_id):
        raise NotFoundError("Course not found")
    _validate_settings(passing_score, time_limit)
    built = _build_questions(questions)

    quiz = Quiz(
        course_id=course_id,
        title=title.strip(),
        description=description or "",
        passing_score=passing_score,
        time_limit=time_limit,
        is_published=is_published,
    )
    session.add(quiz)
    session.flush()

    for question in built:
        question.quiz_id = quiz.id
    session.add_all(built)
    quiz.total_points = sum(q.points for q in built)
    session.add(quiz)
    session.commit()
    session.refresh(quiz)

    logger.info(
        "Created quiz %s for course %s with %d questions (%d points)",
        quiz.id, course_id, len(built), quiz.total_points,
    )
    return quiz


def replace_questions(
    session: Session, quiz_id: int, questions: Sequence[QuestionPayload]
) -> Quiz:
    """Replace the whole question set of a quiz and recompute ``total_points``.

    Existing attempts keep the ``total_points`` copied at submission time.
    """
    quiz = session.exec(
        select(Quiz).where(Quiz.id == quiz_id).with_for_update()
    ).first()
    if not quiz:
        raise NotFoundError("Quiz not found")
    built = _build_questions(questions)

    session.execute(delete(Question).where(Question.quiz_id == quiz_id))
    for question in built:
        question.quiz_id = quiz_id
    session.add_all(built)

    quiz.total_points = sum(q.points for q in built)
    quiz.updated_at = utcnow()
    session.add(quiz)
    session.commit()
    session.refresh(quiz)

    logger.info(
        "Replaced questions of quiz %s: %d questions, %d points",
        quiz_id, len(built), quiz.total_points,
    )
    return quiz


def set_published(session: Session, quiz_id: int, is_published: bool) -> Quiz:
    quiz = get_quiz(session, quiz_id)
    quiz.is_published = is_published
    quiz.updated_at = utcnow()
    session.add(quiz)
    session.commit()
    session.refresh(quiz)
    logger.info("Quiz %s published=%s", quiz_id, is_published)
    return quiz


def available_quizzes(session: Session, student_id: int) -> List[Quiz]:
    """Published quizzes of every course the student is actively enrolled in."""
    course_ids = session.exec(
        select(Enrollment.course_id).where(
            (Enrollment.student_id == student_id) & (Enrollment.is_active == True)  # noqa: E712
        )
    ).all()
    if not course_ids:
        return []
    return session.exec(
        select(Quiz)
        .where(Quiz.course_id.in_(course_ids) & (Quiz.is_published == True))  # noqa: E712
        .order_by(Quiz.created_at.desc())
    ).all()


def find_quiz_for_update(session: Session, quiz_id: int) -> Optional[Quiz]:
    """Load a quiz with a shared row lock for the current transaction."""
    return session.exec(
        select(Quiz).where(Quiz.id == quiz_id).with_for_update(read=True)
    ).first()
