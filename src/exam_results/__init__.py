"""Exam result aggregation engine."""

from .aggregation import SummaryAggregator, rollup_exams
from .normalizer import normalize_response
from .pipeline import ResultService, compute_results
from .pydantic_models import ExamResultSet
from .schemas import Exam, GradedCopy, ScoringConfiguration, Submission
from .scoring import score_copy

__all__ = [
    "Exam",
    "ExamResultSet",
    "GradedCopy",
    "ResultService",
    "ScoringConfiguration",
    "Submission",
    "SummaryAggregator",
    "compute_results",
    "normalize_response",
    "rollup_exams",
    "score_copy",
]
