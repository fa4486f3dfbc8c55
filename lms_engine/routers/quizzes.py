"""Quiz routes: authoring, student view, attempt submission and history."""

from typing import List, Sequence

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from lms_engine.database import get_session
from lms_engine.deps import require_login, require_role
from lms_engine.errors import QuizUnavailableError
from lms_engine.models import Question, Quiz, User
from lms_engine.schemas import (
    AttemptRead,
    AttemptSubmit,
    PublishIn,
    QuestionRead,
    QuestionsReplace,
    QuizCreate,
    QuizRead,
    StudentQuestionRead,
    StudentQuizRead,
)
from lms_engine.services import attempt_service, course_service, quiz_service

router = APIRouter()

AUTHORS = ["instructor", "admin"]


def _quiz_read(quiz: Quiz, questions: Sequence[Question]) -> QuizRead:
    return QuizRead.model_validate(
        {
            **quiz.model_dump(),
            "question_count": len(questions),
            "questions": [QuestionRead.model_validate(q) for q in questions],
        }
    )


def _student_quiz_read(quiz: Quiz, questions: Sequence[Question]) -> StudentQuizRead:
    # Correct answers and option flags never leave the server for students
    return StudentQuizRead.model_validate(
        {
            **quiz.model_dump(),
            "question_count": len(questions),
            "questions": [StudentQuestionRead.model_validate(q) for q in questions],
        }
    )


def _check_quiz_owner(session: Session, quiz_id: int, user: User) -> Quiz:
    quiz = quiz_service.get_quiz(session, quiz_id)
    course_service.check_course_owner(session, quiz.course_id, user)
    return quiz


@router.post("", status_code=201, response_model=QuizRead)
def api_create_quiz(
    payload: QuizCreate = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(AUTHORS)),
):
    course_service.check_course_owner(session, payload.course_id, current_user)
    quiz = quiz_service.create_quiz(
        session,
        course_id=payload.course_id,
        title=payload.title,
        questions=payload.questions,
        description=payload.description,
        passing_score=payload.passing_score,
        time_limit=payload.time_limit,
        is_published=payload.is_published,
    )
    return _quiz_read(quiz, quiz_service.list_questions(session, quiz.id))


@router.get("/student/available", response_model=List[StudentQuizRead])
def api_available_quizzes(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    """Published quizzes of the courses the student is enrolled in."""
    quizzes = quiz_service.available_quizzes(session, current_user.id)
    return [
        _student_quiz_read(quiz, quiz_service.list_questions(session, quiz.id))
        for quiz in quizzes
    ]


@router.get("/{quiz_id}", response_model=None)
def api_get_quiz(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    quiz = quiz_service.get_quiz(session, quiz_id)
    questions = quiz_service.list_questions(session, quiz_id)
    if current_user.role == "student":
        if not quiz.is_published:
            raise QuizUnavailableError()
        return _student_quiz_read(quiz, questions)
    return _quiz_read(quiz, questions)


@router.put("/{quiz_id}/questions", response_model=QuizRead)
def api_replace_questions(
    quiz_id: int,
    payload: QuestionsReplace = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(AUTHORS)),
):
    _check_quiz_owner(session, quiz_id, current_user)
    quiz = quiz_service.replace_questions(session, quiz_id, payload.questions)
    return _quiz_read(quiz, quiz_service.list_questions(session, quiz_id))


@router.patch("/{quiz_id}/publish", response_model=QuizRead)
def api_publish_quiz(
    quiz_id: int,
    payload: PublishIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(AUTHORS)),
):
    _check_quiz_owner(session, quiz_id, current_user)
    quiz = quiz_service.set_published(session, quiz_id, payload.is_published)
    return _quiz_read(quiz, quiz_service.list_questions(session, quiz_id))


@router.post("/{quiz_id}/attempt", status_code=201, response_model=AttemptRead)
def api_submit_attempt(
    quiz_id: int,
    payload: AttemptSubmit = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role(["student"])),
):
    """Grade the submitted answers and store them as a new attempt."""
    attempt = attempt_service.submit_attempt(
        session,
        student_id=current_user.id,
        quiz_id=quiz_id,
        answers=payload.answers,
        time_spent=payload.time_spent,
    )
    return AttemptRead.model_validate(attempt)


@router.get("/{quiz_id}/attempts", response_model=List[AttemptRead])
def api_list_attempts(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_login),
):
    """Students see their own attempts; the course instructor and admins see all."""
    if current_user.role == "student":
        quiz_service.get_quiz(session, quiz_id)
        student_id = current_user.id
    else:
        _check_quiz_owner(session, quiz_id, current_user)
        student_id = None
    attempts = attempt_service.list_attempts(session, quiz_id, student_id=student_id)
    return [AttemptRead.model_validate(a) for a in attempts]
