from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import UnresolvableCopyError


DEFAULT_MAX_POINTS = 20.0

STATUS_FULL = "full"
STATUS_PARTIAL = "partial"
STATUS_ZERO = "zero"

QUESTION_TYPES = ("mcq", "short", "essay", "auto")


class ExamStatus(str, Enum):
    BROUILLON = "brouillon"
    PUBLIE = "publie"
    VALIDE = "valide"
    TERMINE = "termine"


@dataclass(frozen=True)
class Submission:
    """A student's uploaded file, in upload order within its exam."""

    id: str
    display_name: str
    storage_location: str = ""
    uploaded_at: str = ""

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Submission":
        submission_id = str(data.get("id", "")).strip()
        if not submission_id:
            raise ValueError("Submission missing 'id'.")
        return Submission(
            id=submission_id,
            display_name=str(data.get("display_name") or data.get("name") or "").strip(),
            storage_location=str(data.get("storage_location") or data.get("url") or "").strip(),
            uploaded_at=str(data.get("uploaded_at") or data.get("uploadedAt") or "").strip(),
        )


@dataclass(frozen=True)
class ScoringConfiguration:
    """Point configuration derived from the exam's reference correction.

    `max_points_total` stays None when the reference correction gives no
    exam-level total; copies are then scored out of the sum of their
    per-question maxima.
    """

    max_points_total: Optional[float] = None
    question_weights: Dict[int, float] = field(default_factory=dict)

    @property
    def total_or_default(self) -> float:
        if self.max_points_total is None:
            return DEFAULT_MAX_POINTS
        return self.max_points_total

    def default_max_points(self, question_number: int, question_count: int) -> float:
        """Max points for a question whose raw entry carries none."""
        weight = self.question_weights.get(question_number)
        if weight is not None and weight > 0:
            return float(weight)
        share = round(self.total_or_default / max(question_count, 1))
        return float(max(share, 1))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ScoringConfiguration":
        total = data.get("max_points_total", data.get("totalPoints"))
        weights_raw = data.get("question_weights", {}) or {}
        if not isinstance(weights_raw, dict):
            raise ValueError("Scoring configuration 'question_weights' must be an object.")
        return ScoringConfiguration(
            max_points_total=float(total) if total is not None else None,
            question_weights={int(k): float(v) for k, v in weights_raw.items()},
        )


@dataclass(frozen=True)
class QuestionResult:
    question_number: int
    type: str
    awarded_points: float
    max_points: float
    extracted_answer: str
    comment: Optional[str] = None
    status: str = ""


@dataclass(frozen=True)
class NormalizedCopy:
    """A raw copy entry resolved to its submission but not yet scored."""

    key: str
    id: str
    student_label: str
    questions: List[QuestionResult]
    reported_total: Optional[float] = None
    submission: Optional[Submission] = None


@dataclass
class NormalizationResult:
    copies: List[NormalizedCopy] = field(default_factory=list)
    errors: List[UnresolvableCopyError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class GradedCopy:
    id: str
    student_label: str
    total_score: float
    max_score: float
    percentage: float
    questions: List[QuestionResult]


@dataclass(frozen=True)
class ExamResultSummary:
    total_copies: int
    graded_copies: int
    mean: float
    min: float
    max: float
    median: float
    distribution: Dict[str, int]


@dataclass(frozen=True)
class RecentEvaluation:
    exam_id: str
    title: str
    generated_at: datetime
    graded_copies: int
    mean: float


@dataclass(frozen=True)
class CrossExamAggregate:
    total_exams: int
    exams_with_results: int
    total_submissions: int
    total_graded: int
    overall_mean: float
    distribution: Dict[str, int]
    distribution_percent: Dict[str, float]
    recent: List[RecentEvaluation]


@dataclass
class Exam:
    id: str
    title: str
    submissions: List[Submission] = field(default_factory=list)
    scoring: ScoringConfiguration = field(default_factory=ScoringConfiguration)
    status: ExamStatus = ExamStatus.BROUILLON

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Exam":
        exam_id = str(data.get("id", "")).strip()
        if not exam_id:
            raise ValueError("Exam missing 'id'.")
        submissions_raw = data.get("submissions", data.get("copies", []))
        if not isinstance(submissions_raw, list):
            raise ValueError("Exam must contain a list at key 'submissions'.")
        return Exam(
            id=exam_id,
            title=str(data.get("title") or data.get("titre") or exam_id).strip(),
            submissions=[Submission.from_dict(item) for item in submissions_raw],
            scoring=ScoringConfiguration.from_dict(data.get("scoring", {}) or {}),
            status=ExamStatus(data.get("status", data.get("statut", ExamStatus.BROUILLON.value))),
        )
