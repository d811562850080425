from __future__ import annotations

from dataclasses import replace

from .schemas import (
    STATUS_FULL,
    STATUS_PARTIAL,
    STATUS_ZERO,
    GradedCopy,
    NormalizedCopy,
    ScoringConfiguration,
)


def clamp_points(awarded: float, max_points: float) -> float:
    return min(max(awarded, 0.0), max_points)


def classify(awarded: float, max_points: float) -> str:
    if awarded <= 0:
        return STATUS_ZERO
    if awarded >= max_points:
        return STATUS_FULL
    return STATUS_PARTIAL


def percentage(total: float, max_score: float) -> float:
    """Percentage on one decimal; a zero or missing denominator gives 0."""
    if not max_score or max_score <= 0:
        return 0.0
    return round(total / max_score * 100, 1)


def score_copy(copy: NormalizedCopy, config: ScoringConfiguration) -> GradedCopy:
    """Clamp, classify and total one normalized copy.

    A non-negative server-reported total wins over the per-question sum.
    Either total is capped at the max score, and the percentage is always
    recomputed from it.
    """
    questions = []
    for question in copy.questions:
        awarded = clamp_points(question.awarded_points, question.max_points)
        questions.append(
            replace(
                question,
                awarded_points=awarded,
                status=classify(awarded, question.max_points),
            )
        )

    if config.max_points_total is not None:
        max_score = config.max_points_total
    else:
        max_score = sum(q.max_points for q in questions)

    if copy.reported_total is not None and copy.reported_total >= 0:
        total = copy.reported_total
    else:
        total = sum(q.awarded_points for q in questions)
    if max_score > 0:
        total = min(total, max_score)

    return GradedCopy(
        id=copy.id,
        student_label=copy.student_label,
        total_score=total,
        max_score=max_score,
        percentage=percentage(total, max_score),
        questions=questions,
    )
