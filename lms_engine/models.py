"""SQLModel models for the LMS assessment & progress engine."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy.orm import declared_attr
from sqlmodel import Field, SQLModel

from lms_engine.config import DEFAULT_PASSING_SCORE
from lms_engine.utils import utcnow

QUESTION_TYPES = ("multiple-choice", "true-false", "short-answer")
USER_ROLES = ("student", "instructor", "admin")


def _versioned(cls) -> dict:
    # UPDATEs carry "WHERE version = <loaded value>"; writers bump the value
    # themselves and a concurrent change raises StaleDataError at flush.
    return {"version_id_col": cls.__table__.c.version, "version_id_generator": False}


class User(SQLModel, table=True):
    """Account holding a role. Credentials live with the external auth service."""

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    role: str = Field(default="student")  # "student", "instructor", "admin"
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    instructor_id: Optional[int] = Field(default=None, foreign_key="user.id")
    is_published: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)

    # Derived from Enrollment.rating; only the rating aggregator writes these
    rating: float = Field(default=0.0)
    rating_count: int = Field(default=0)
    version: int = Field(default=1)

    @declared_attr
    def __mapper_args__(cls):
        return _versioned(cls)


class Lesson(SQLModel, table=True):
    """A lesson of a course. Its count drives enrollment progress."""

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    title: str
    position: int = Field(default=1)


class Quiz(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    title: str
    description: str = Field(default="")
    passing_score: int = Field(default=DEFAULT_PASSING_SCORE)  # percentage
    time_limit: Optional[int] = Field(default=None)  # minutes, None means no limit
    total_points: int = Field(default=0)
    is_published: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Question(SQLModel, table=True):
    """A question belonging to a quiz, ordered by ``position`` (1-based)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    position: int
    prompt: str
    type: str = Field(default="multiple-choice")
    # [{"text": ..., "isCorrect": ...}]
    options: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    correct_answer: str = Field(default="")
    points: int = Field(default=1)


class QuizAttempt(SQLModel, table=True):
    """One graded submission. Rows are inserted once and never updated."""

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="user.id", index=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    course_id: int = Field(foreign_key="course.id")
    # [{"questionId": ..., "answer": ..., "isCorrect": ..., "pointsEarned": ...}]
    answers: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    score: int = Field(default=0)
    total_points: int = Field(default=0)
    percentage: int = Field(default=0)
    passed: bool = Field(default=False)
    submitted_at: datetime = Field(default_factory=utcnow)
    time_spent: int = Field(default=0)  # minutes


class Enrollment(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    enrolled_at: datetime = Field(default_factory=utcnow)
    is_active: bool = Field(default=True)

    # [{"lessonId": ..., "completedAt": iso-8601}], at most one entry per lesson
    completed_lessons: list = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    progress: int = Field(default=0)  # percentage
    completed: bool = Field(default=False)
    completed_at: Optional[datetime] = None

    rating: Optional[int] = None  # 1..5
    rating_comment: Optional[str] = None
    rated_at: Optional[datetime] = None
    version: int = Field(default=1)

    @declared_attr
    def __mapper_args__(cls):
        return _versioned(cls)
