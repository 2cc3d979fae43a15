"""Exam grading.

Pure functions: no database access, no clock. The engine feeds the answer
records read under the session lock and persists the result itself.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class GradableAnswer(Protocol):
    selected_option_index: int | None
    correct_option_index: int


@dataclass(frozen=True)
class GradeResult:
    """Final counters of a graded session."""

    answered_count: int
    correct_count: int
    wrong_count: int
    score: int
    percentage: float
    is_passed: bool
    duration_seconds: int | None
    # Per answer record, same order as the input
    correctness: tuple[bool, ...]


def is_answer_correct(selected_option_index: int | None, correct_option_index: int) -> bool:
    return selected_option_index is not None and selected_option_index == correct_option_index


def compute_percentage(correct_count: int, total_questions: int) -> float:
    """Share of correct answers over all questions, unrounded."""
    if total_questions <= 0:
        return 0.0
    return correct_count * 100 / total_questions


def grade(
    answers: Sequence[GradableAnswer],
    total_questions: int,
    passing_score: int,
    started_at: datetime | None,
    finished_at: datetime,
) -> GradeResult:
    """
    Grade a session from its answer records.

    Unanswered records are neither correct nor wrong; they only count in the
    denominator, so they lower the percentage.

    Args:
        answers: All answer records of the session
        total_questions: Fixed question count of the session
        passing_score: Pass threshold in percent (inclusive)
        started_at: Session start
        finished_at: Finalization time

    Returns:
        GradeResult
    """
    correctness = tuple(
        is_answer_correct(a.selected_option_index, a.correct_option_index) for a in answers
    )
    answered_count = sum(1 for a in answers if a.selected_option_index is not None)
    correct_count = sum(correctness)
    percentage = compute_percentage(correct_count, total_questions)

    duration_seconds = None
    if started_at is not None:
        duration_seconds = max(0, int((finished_at - started_at).total_seconds()))

    return GradeResult(
        answered_count=answered_count,
        correct_count=correct_count,
        wrong_count=answered_count - correct_count,
        score=correct_count,
        percentage=percentage,
        is_passed=percentage >= passing_score,
        duration_seconds=duration_seconds,
        correctness=correctness,
    )
