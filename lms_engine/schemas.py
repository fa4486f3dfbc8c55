"""Pydantic models for API requests/responses and the engine's data contracts.

JSON blobs stored on the tables (question options, graded answers,
completed lessons) are validated into these structures at the boundary.
Field names are serialized in camelCase to stay compatible with existing
consumers of the API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictBool,
    StrictInt,
    Tag,
    model_validator,
)
from pydantic.alias_generators import to_camel

from lms_engine.config import DEFAULT_PASSING_SCORE

PROMPT_MAX_LENGTH = 5000
OPTION_MAX_LENGTH = 1000
ANSWER_MAX_LENGTH = 5000
COMMENT_MAX_LENGTH = 2000

TRUE_FALSE_OPTIONS = ("True", "False")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# --- Question payloads ---


class QuestionOption(CamelModel):
    text: str = Field(min_length=1, max_length=OPTION_MAX_LENGTH)
    is_correct: bool = False


class _QuestionIn(CamelModel):
    prompt: str = Field(min_length=1, max_length=PROMPT_MAX_LENGTH)
    points: int = Field(default=1, ge=1)
    correct_answer: str = Field(default="", max_length=OPTION_MAX_LENGTH)


class MultipleChoiceQuestionIn(_QuestionIn):
    type: Literal["multiple-choice"] = "multiple-choice"
    options: List[QuestionOption] = Field(min_length=2)

    @model_validator(mode="after")
    def _check_options(self) -> "MultipleChoiceQuestionIn":
        texts = [opt.text for opt in self.options]
        if len(texts) != len(set(texts)):
            raise ValueError("All options must be unique.")

        if not self.correct_answer:
            flagged = [opt.text for opt in self.options if opt.is_correct]
            if not flagged:
                raise ValueError("A correct option must be specified.")
            self.correct_answer = flagged[0]

        if self.correct_answer not in texts:
            raise ValueError("Correct answer must match one of the options.")

        # The stored flags always agree with correct_answer
        self.options = [
            QuestionOption(text=opt.text, is_correct=opt.text == self.correct_answer)
            for opt in self.options
        ]
        return self


class TrueFalseQuestionIn(_QuestionIn):
    type: Literal["true-false"]
    options: List[QuestionOption] = Field(default_factory=list)

    @model_validator(mode="after")
    def _force_options(self) -> "TrueFalseQuestionIn":
        if self.correct_answer not in TRUE_FALSE_OPTIONS:
            raise ValueError('Correct answer must be "True" or "False".')
        self.options = [
            QuestionOption(text=text, is_correct=text == self.correct_answer)
            for text in TRUE_FALSE_OPTIONS
        ]
        return self


class ShortAnswerQuestionIn(_QuestionIn):
    type: Literal["short-answer"]
    options: List[QuestionOption] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_answer(self) -> "ShortAnswerQuestionIn":
        if not self.correct_answer.strip():
            raise ValueError("Short-answer questions need a correct answer.")
        self.options = []
        return self


def _question_type(value: Any) -> str:
    # Questions without an explicit type are multiple-choice
    if isinstance(value, dict):
        return value.get("type") or "multiple-choice"
    return getattr(value, "type", "multiple-choice")


QuestionIn = Annotated[
    Union[
        Annotated[MultipleChoiceQuestionIn, Tag("multiple-choice")],
        Annotated[TrueFalseQuestionIn, Tag("true-false")],
        Annotated[ShortAnswerQuestionIn, Tag("short-answer")],
    ],
    Discriminator(_question_type),
]


class QuizCreate(CamelModel):
    course_id: int
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    passing_score: int = Field(default=DEFAULT_PASSING_SCORE, ge=0, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1)  # minutes, None means no limit
    is_published: bool = False
    questions: List[QuestionIn] = Field(default_factory=list)


class QuestionsReplace(CamelModel):
    questions: List[QuestionIn]


class PublishIn(CamelModel):
    is_published: StrictBool


class QuestionRead(CamelModel):
    id: int
    position: int
    prompt: str
    type: str
    options: List[QuestionOption] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    points: int


class StudentOption(CamelModel):
    text: str


class StudentQuestionRead(CamelModel):
    """Question as shown to a student: no correct answer, no option flags."""

    id: int
    position: int
    prompt: str
    type: str
    options: List[StudentOption] = Field(default_factory=list)
    points: int


class _QuizFields(CamelModel):
    id: int
    course_id: int
    title: str
    description: str
    passing_score: int
    time_limit: Optional[int] = None
    total_points: int
    is_published: bool
    question_count: int = 0


class QuizRead(_QuizFields):
    questions: List[QuestionRead] = Field(default_factory=list)


class StudentQuizRead(_QuizFields):
    questions: List[StudentQuestionRead] = Field(default_factory=list)


# --- Grading ---


class SubmittedAnswer(CamelModel):
    question_id: int
    answer: Optional[str] = Field(default=None, max_length=ANSWER_MAX_LENGTH)


class AttemptSubmit(CamelModel):
    answers: List[SubmittedAnswer] = Field(default_factory=list)
    time_spent: int = Field(default=0, ge=0)


class GradedAnswer(CamelModel):
    question_id: int
    answer: Optional[str] = None
    is_correct: bool
    points_earned: int


class GradedResult(CamelModel):
    answers: List[GradedAnswer] = Field(default_factory=list)
    score: int
    total_points: int
    percentage: int
    passed: bool


class AttemptRead(CamelModel):
    id: int
    student_id: int
    quiz_id: int
    course_id: int
    answers: List[GradedAnswer]
    score: int
    total_points: int
    percentage: int
    passed: bool
    submitted_at: datetime
    time_spent: int


# --- Progress & rating ---


class CompletedLesson(CamelModel):
    lesson_id: int
    completed_at: datetime


class EnrollmentRead(CamelModel):
    id: int
    student_id: int
    course_id: int
    enrolled_at: datetime
    is_active: bool
    completed_lessons: List[CompletedLesson] = Field(default_factory=list)
    progress: int
    completed: bool
    completed_at: Optional[datetime] = None
    rating: Optional[int] = None
    rating_comment: Optional[str] = None
    rated_at: Optional[datetime] = None


class EnrollmentCheck(CamelModel):
    is_enrolled: bool
    enrollment: Optional[EnrollmentRead] = None


class LessonCompleteIn(CamelModel):
    lesson_id: int


class RatingIn(CamelModel):
    rating: StrictInt
    comment: Optional[str] = Field(default=None, max_length=COMMENT_MAX_LENGTH)


class CourseRatingSummary(CamelModel):
    course_id: int
    rating: float
    rating_count: int
