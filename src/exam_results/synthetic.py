"""Synthetic grading provider used when the grading service is unavailable.

Produces a response in the live grading-service shape, without `note_totale`,
so copies are totalled from their per-question points. When the exam sets a
total, each copy's question maxima are scaled to add up to it.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from .schemas import Exam

logger = logging.getLogger(__name__)

COMMENTS_FULL = ("Très bonne réponse", "Excellent", "Réponse complète")
COMMENTS_PARTIAL = (
    "Réponse partielle, développer un exemple",
    "Manque de précision",
    "Bonne idée, mais manque de détails",
)
COMMENTS_ZERO = ("Réponse incorrecte", "Hors sujet", "Aucune réponse")

ESSAY_FULL = "Très bon développement, arguments et exemples pertinents"
ESSAY_PARTIAL = "Bonne structure, développer davantage certains points"
ESSAY_ZERO = "Travail insuffisant, développer vos arguments"

MCQ_CHOICES = ("A", "B", "C", "D")
OPEN_ANSWERS = ("Réponse courte", "Réponse rédigée")


class SyntheticGradingProvider:
    def __init__(self, seed: Optional[int] = None, questions_per_copy: int = 5):
        if questions_per_copy < 1:
            raise ValueError("questions_per_copy must be at least 1.")
        self.seed = seed
        self.questions_per_copy = questions_per_copy
        self._rng = random.Random(seed)

    def grade(self, exam: Exam) -> Dict[str, Any]:
        logger.info("Generating synthetic grades for %d copies of exam %s", len(exam.submissions), exam.id)
        total = exam.scoring.max_points_total
        resultat = {}
        for index, submission in enumerate(exam.submissions):
            questions = [self._question(n + 1) for n in range(self.questions_per_copy)]
            if total is not None and total > 0:
                questions = scale_to_total(questions, total)
            resultat[f"copie_{index + 1}"] = {
                "nom_fichier": submission.display_name,
                "db_id": submission.id,
                "questions": questions,
            }
        return {"resultat": resultat}

    def _question(self, number: int) -> Dict[str, Any]:
        kind = self._choose_type()
        max_points = self._max_points(kind)
        if kind == "mcq":
            points, comment = self._score_mcq(max_points)
        elif kind == "short":
            points, comment = self._score_short(max_points)
        else:
            points, comment = self._score_essay(max_points)

        rng = self._rng
        answer = rng.choice(MCQ_CHOICES) if kind == "mcq" else rng.choice(OPEN_ANSWERS)
        return {
            "num": number,
            "type": kind,
            "reponse": answer,
            "point": points,
            "max_points": max_points,
            "commentaire": comment,
        }

    def _choose_type(self) -> str:
        r = self._rng.random()
        if r < 0.5:
            return "mcq"
        if r < 0.8:
            return "short"
        return "essay"

    def _max_points(self, kind: str) -> int:
        if kind == "mcq":
            return self._rng.randint(1, 2)
        if kind == "short":
            return self._rng.randint(2, 4)
        return self._rng.randint(3, 6)

    def _score_mcq(self, max_points: int) -> Tuple[int, str]:
        if self._rng.random() < 0.6:
            return max_points, self._rng.choice(COMMENTS_FULL)
        return 0, self._rng.choice(COMMENTS_ZERO)

    def _score_short(self, max_points: int) -> Tuple[int, str]:
        p = self._rng.random()
        if p < 0.25:
            points = 0
        elif p < 0.65:
            points = self._rng.randrange(max_points)
        else:
            points = max_points
        return points, self._pick_comment(points, max_points)

    def _score_essay(self, max_points: int) -> Tuple[int, str]:
        p = self._rng.random()
        if p < 0.15:
            points = 0
        elif p < 0.5:
            points = self._rng.randrange(max(1, max_points // 2))
        elif p < 0.85:
            points = self._rng.randrange(max_points - 1) + 1
        else:
            points = max_points

        if points == max_points:
            return points, ESSAY_FULL
        if points == 0:
            return points, ESSAY_ZERO
        return points, ESSAY_PARTIAL

    def _pick_comment(self, points: int, max_points: int) -> str:
        if points == max_points:
            return self._rng.choice(COMMENTS_FULL)
        if points == 0:
            return self._rng.choice(COMMENTS_ZERO)
        return self._rng.choice(COMMENTS_PARTIAL)


def scale_to_total(questions: List[Dict[str, Any]], total: float) -> List[Dict[str, Any]]:
    """Rescale question maxima and points so the maxima add up to `total`.

    Each question keeps its status: full stays full, zero stays zero and
    partial stays strictly between the two. The last question takes the
    rounding remainder.
    """
    factor = total / sum(q["max_points"] for q in questions)
    remaining = total
    scaled = []
    for index, question in enumerate(questions):
        if index == len(questions) - 1:
            max_points = round(remaining, 2)
        else:
            max_points = round(question["max_points"] * factor, 2)
            remaining -= max_points

        if question["point"] >= question["max_points"]:
            points = max_points
        elif question["point"] <= 0:
            points = 0
        else:
            points = round(question["point"] * factor, 2)
            points = min(max(points, 0.01), round(max_points - 0.01, 2))
        scaled.append(dict(question, max_points=max_points, point=points))
    return scaled
