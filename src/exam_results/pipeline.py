from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .aggregation import ExamRollupEntry, SummaryAggregator
from .cache import JsonDirectoryResultCache, ResultCache
from .errors import GradingServiceError, UnresolvableCopyError
from .normalizer import normalize_response
from .pydantic_models import CopyResult, ExamResultSet, QuestionDetail, ResultSummary
from .schemas import CrossExamAggregate, Exam, ExamResultSummary, ExamStatus, GradedCopy
from .scoring import score_copy

logger = logging.getLogger(__name__)


class GradingProvider(Protocol):
    def grade(self, exam: Exam) -> Dict[str, Any]:
        ...


@dataclass
class GradingRun:
    result_set: ExamResultSet
    errors: List[UnresolvableCopyError] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def progress_label(self) -> str:
        summary = self.result_set.summary
        return f"{summary.graded} of {summary.total} copies graded"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_result_set(
    exam_id: str,
    copies: Sequence[GradedCopy],
    summary: ExamResultSummary,
    generated_at: datetime,
) -> ExamResultSet:
    return ExamResultSet(
        exam_id=exam_id,
        generated_at=generated_at,
        summary=ResultSummary(
            total=summary.total_copies,
            graded=summary.graded_copies,
            mean=summary.mean,
            minimum=summary.min,
            maximum=summary.max,
            median=summary.median,
            distribution=dict(summary.distribution),
        ),
        copies=[
            CopyResult(
                id=copy.id,
                student_name=copy.student_label,
                note=copy.total_score,
                max_note=copy.max_score,
                percent=copy.percentage,
                details=[
                    QuestionDetail(
                        question=q.question_number,
                        type=q.type,
                        reponse=q.extracted_answer,
                        points=q.awarded_points,
                        max_points=q.max_points,
                        status=q.status,
                        comment=q.comment,
                    )
                    for q in copy.questions
                ],
            )
            for copy in copies
        ],
    )


def compute_results(
    raw: Any,
    exam: Exam,
    aggregator: SummaryAggregator,
    generated_at: datetime,
) -> Tuple[ExamResultSet, List[UnresolvableCopyError]]:
    """Normalize, score and aggregate one complete grading response."""
    normalized = normalize_response(raw, exam.submissions, exam.scoring)
    graded = [score_copy(copy, exam.scoring) for copy in normalized.copies]
    summary = aggregator.summarize(graded, total_copies=len(exam.submissions))
    return build_result_set(exam.id, graded, summary, generated_at), normalized.errors


class ResultService:
    """Runs grading for an exam and keeps its latest result set in a cache.

    Callers must not start two runs for the same exam at once; the cache
    keeps whichever run finished last.
    """

    def __init__(
        self,
        provider: GradingProvider,
        cache: ResultCache,
        aggregator: Optional[SummaryAggregator] = None,
        fallback_provider: Optional[GradingProvider] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.provider = provider
        self.cache = cache
        self.aggregator = aggregator or SummaryAggregator()
        self.fallback_provider = fallback_provider
        self.clock = clock

    def run_grading(self, exam: Exam) -> GradingRun:
        if not exam.submissions:
            raise ValueError(f"Exam {exam.id} has no copies to grade.")
        if exam.status == ExamStatus.TERMINE:
            raise ValueError(f"Exam {exam.id} is finished and cannot be graded again.")

        used_fallback = False
        try:
            raw = self.provider.grade(exam)
        except GradingServiceError as e:
            if self.fallback_provider is None:
                raise
            logger.warning("Grading service failed for exam %s (%s); using fallback provider", exam.id, e)
            raw = self.fallback_provider.grade(exam)
            used_fallback = True

        result_set, errors = compute_results(raw, exam, self.aggregator, self.clock())
        self.cache.put(exam.id, result_set)
        if exam.status == ExamStatus.VALIDE:
            # validated results were just replaced
            exam.status = ExamStatus.BROUILLON
        logger.info(
            "Exam %s: %d/%d copies graded, %d skipped",
            exam.id,
            result_set.summary.graded,
            result_set.summary.total,
            len(errors),
        )
        return GradingRun(result_set=result_set, errors=errors, used_fallback=used_fallback)

    def cached_results(self, exam_id: str) -> Optional[ExamResultSet]:
        return self.cache.get(exam_id)

    def validate(self, exam: Exam) -> Exam:
        if exam.status == ExamStatus.TERMINE:
            raise ValueError(f"Exam {exam.id} is already finished.")
        if self.cache.get(exam.id) is None:
            raise ValueError(f"Exam {exam.id} has no grading results to validate.")
        exam.status = ExamStatus.VALIDE
        return exam

    def finish(self, exam: Exam) -> Exam:
        if exam.status != ExamStatus.VALIDE:
            raise ValueError(f"Exam {exam.id} must be validated before it is finished.")
        exam.status = ExamStatus.TERMINE
        return exam


def load_exam(path: Path) -> Exam:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Exam file must contain a JSON object.")
    return Exam.from_dict(payload)


def build_rollup_entries(exams: Sequence[Exam], cache: JsonDirectoryResultCache) -> List[ExamRollupEntry]:
    """Pair each exam with its cached result set, scanning the cache once."""
    cached = {result_set.exam_id: result_set for result_set in cache.iter_results()}
    return [
        ExamRollupEntry(
            exam_id=exam.id,
            title=exam.title,
            submission_count=len(exam.submissions),
            results=cached.get(exam.id),
        )
        for exam in exams
    ]


def build_item_breakdown(copy: CopyResult) -> str:
    parts = [f"Q{d.question}:{d.points:g}/{d.max_points:g}" for d in copy.details]
    return "; ".join(parts)


def save_result_json(path: Path, result_set: ExamResultSet) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(result_set.to_json(indent=2), encoding="utf-8")


def save_copies_csv(path: Path, result_set: ExamResultSet) -> None:
    if not result_set.copies:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = ["id", "student", "note", "max_note", "percent", "item_breakdown"]
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for copy in result_set.copies:
            writer.writerow(
                {
                    "id": copy.id,
                    "student": copy.student_name,
                    "note": f"{copy.note:g}",
                    "max_note": f"{copy.max_note:g}",
                    "percent": f"{copy.percent:.1f}",
                    "item_breakdown": build_item_breakdown(copy),
                }
            )


def save_rollup_json(path: Path, aggregate: CrossExamAggregate) -> None:
    payload: Dict[str, Any] = {
        "total_exams": aggregate.total_exams,
        "exams_with_results": aggregate.exams_with_results,
        "total_submissions": aggregate.total_submissions,
        "total_graded": aggregate.total_graded,
        "overall_mean": aggregate.overall_mean,
        "distribution": aggregate.distribution,
        "distribution_percent": aggregate.distribution_percent,
        "recent": [
            {
                "exam_id": item.exam_id,
                "title": item.title,
                "generated_at": item.generated_at.isoformat(),
                "graded_copies": item.graded_copies,
                "mean": item.mean,
            }
            for item in aggregate.recent
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
