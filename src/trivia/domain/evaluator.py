import math
from collections.abc import Mapping, Sequence

from src.trivia.domain.models import Question


def is_correct(question: Question, selected: Sequence[int]) -> bool:
    """
    All-or-nothing check: the selection must match the answer key exactly,
    ignoring order. Works the same for single- and multi-select questions.
    """
    if len(selected) != len(question.correct_answers):
        return False
    return sorted(selected) == sorted(question.correct_answers)


def total_points(questions: Sequence[Question]) -> int:
    return sum(q.points for q in questions)


def earned_points(
    questions: Sequence[Question], answers: Mapping[str, Sequence[int]]
) -> int:
    """Points of every question whose recorded answer is correct."""
    return sum(
        q.points for q in questions if q.id in answers and is_correct(q, answers[q.id])
    )


def correct_count(
    questions: Sequence[Question], answers: Mapping[str, Sequence[int]]
) -> int:
    return sum(1 for q in questions if q.id in answers and is_correct(q, answers[q.id]))


def score_percent(earned: int, total: int) -> int:
    # Half rounds up (Math.round on the mobile client), not banker's rounding.
    if total <= 0:
        return 0
    return math.floor(earned * 100 / total + 0.5)
