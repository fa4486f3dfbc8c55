"""Quiz grading.

``grade_attempt`` is a pure function of the quiz, its questions and the
submitted answers. It performs no I/O and does not touch the database, so it
can be exercised directly with unsaved model instances.

Comparison rules per question type:

- ``multiple-choice`` and ``true-false``: exact string equality with the
  question's ``correct_answer`` (case-sensitive, untrimmed).
- ``short-answer``: both sides trimmed and case-folded before comparing; an
  empty or missing answer is never correct.

Questions left unanswered produce no graded entry but still count toward
``total_points``, so they lower the percentage exactly like a wrong answer.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from lms_engine.models import Question, Quiz
from lms_engine.schemas import GradedAnswer, GradedResult, SubmittedAnswer
from lms_engine.utils import percent_of


def _question_points(question: Question) -> int:
    return question.points or 1


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().casefold()


def is_answer_correct(question: Question, answer: Optional[str]) -> bool:
    """Return whether ``answer`` is correct for ``question``."""
    if question.type == "short-answer":
        submitted = _normalize(answer)
        if not submitted:
            return False
        return submitted == _normalize(question.correct_answer)

    # multiple-choice and true-false
    if answer is None:
        return False
    return answer == question.correct_answer


def compute_total_points(quiz: Quiz, questions: Sequence[Question]) -> int:
    """Stored quiz total, or the sum over all questions when it was never set."""
    if quiz.total_points:
        return quiz.total_points
    return sum(_question_points(q) for q in questions)


def grade_attempt(
    quiz: Quiz,
    questions: Sequence[Question],
    submitted_answers: Iterable[SubmittedAnswer],
) -> GradedResult:
    """Grade ``submitted_answers`` against ``questions`` of ``quiz``.

    Answers referencing a question id that is not part of the quiz are
    dropped. When the same question id is submitted more than once only the
    first answer is graded.
    """
    by_id: Dict[int, Question] = {q.id: q for q in questions}

    graded: List[GradedAnswer] = []
    seen = set()
    score = 0
    for submitted in submitted_answers:
        question = by_id.get(submitted.question_id)
        if question is None or question.id in seen:
            continue
        seen.add(question.id)

        correct = is_answer_correct(question, submitted.answer)
        points_earned = _question_points(question) if correct else 0
        score += points_earned
        graded.append(
            GradedAnswer(
                question_id=question.id,
                answer=submitted.answer,
                is_correct=correct,
                points_earned=points_earned,
            )
        )

    if not questions:
        # An empty quiz never passes, even with a passing score of 0
        return GradedResult(
            answers=graded, score=score, total_points=0, percentage=0, passed=False
        )

    total_points = compute_total_points(quiz, questions)
    percentage = percent_of(score, total_points)
    return GradedResult(
        answers=graded,
        score=score,
        total_points=total_points,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
    )
