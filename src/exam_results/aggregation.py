"""Class-wide statistics and cross-exam rollup."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InconsistentBandConfigurationError, UnbandedScoreError
from .pydantic_models import ExamResultSet
from .schemas import CrossExamAggregate, ExamResultSummary, GradedCopy, RecentEvaluation

Band = Tuple[str, float]

PERCENT_BANDS_3: Tuple[Band, ...] = (("excellent", 80.0), ("pass", 50.0), ("fail", 0.0))
PERCENT_BANDS_4: Tuple[Band, ...] = (
    ("excellent", 80.0),
    ("bien", 60.0),
    ("passable", 50.0),
    ("echec", 0.0),
)
# Thresholds on the 0-20 grading scale.
TWENTY_POINT_BANDS: Tuple[Band, ...] = (
    ("excellent", 16.0),
    ("bien", 12.0),
    ("passable", 10.0),
    ("echec", 0.0),
)

DEFAULT_RECENT_LIMIT = 5


def bands_on_scale(bands: Sequence[Band], scale: float) -> Tuple[Band, ...]:
    """Express thresholds given on a `scale`-point grade as percentages."""
    if scale <= 0:
        raise InconsistentBandConfigurationError(f"Band scale must be positive, got {scale}.")
    return tuple((label, threshold / scale * 100.0) for label, threshold in bands)


BAND_SCHEMES: Dict[str, Tuple[Band, ...]] = {
    "percent3": PERCENT_BANDS_3,
    "percent4": PERCENT_BANDS_4,
    "twenty": bands_on_scale(TWENTY_POINT_BANDS, 20.0),
}


def validate_bands(bands: Sequence[Band]) -> Tuple[Band, ...]:
    normalized = tuple((str(label), float(threshold)) for label, threshold in bands)
    if not normalized:
        raise InconsistentBandConfigurationError("At least one band is required.")

    labels = [label for label, _ in normalized]
    if len(set(labels)) != len(labels):
        raise InconsistentBandConfigurationError(f"Duplicate band labels in {labels}.")

    thresholds = [threshold for _, threshold in normalized]
    if any(a <= b for a, b in zip(thresholds, thresholds[1:])):
        raise InconsistentBandConfigurationError(
            f"Band thresholds must be strictly descending, got {thresholds}."
        )
    if thresholds[-1] != 0:
        raise InconsistentBandConfigurationError(
            f"The last band must have a 0 threshold, got {thresholds[-1]}."
        )
    return normalized


def median_of(values: Iterable[float]) -> float:
    """Element at index n // 2 of the ascending sort; 0 for no values.

    For an even count this is the upper of the two middle elements, e.g.
    [40, 60, 80, 100] -> 80.
    """
    ordered = sorted(values)
    if not ordered:
        return 0.0
    return ordered[len(ordered) // 2]


class SummaryAggregator:
    def __init__(self, bands: Sequence[Band] = PERCENT_BANDS_3):
        self.bands = validate_bands(bands)

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.bands]

    def band_for(self, percentage: float) -> str:
        for label, threshold in self.bands:
            if percentage >= threshold:
                return label
        raise UnbandedScoreError(
            f"Percentage {percentage} matches no band in {self.labels}."
        )

    def summarize(
        self,
        copies: Sequence[GradedCopy],
        total_copies: Optional[int] = None,
    ) -> ExamResultSummary:
        """Reduce graded copies to class statistics.

        `total_copies` is the number of submissions for the exam; it defaults
        to the number of graded copies.
        """
        percentages = [copy.percentage for copy in copies]
        distribution = {label: 0 for label in self.labels}
        for value in percentages:
            distribution[self.band_for(value)] += 1

        graded = len(percentages)
        mean = round(sum(percentages) / graded, 2) if graded else 0.0
        return ExamResultSummary(
            total_copies=graded if total_copies is None else total_copies,
            graded_copies=graded,
            mean=mean,
            min=min(percentages) if percentages else 0.0,
            max=max(percentages) if percentages else 0.0,
            median=median_of(percentages),
            distribution=distribution,
        )


def as_utc(moment: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class ExamRollupEntry:
    """One exam as seen by the analytics rollup; `results` is None when ungraded."""

    exam_id: str
    title: str
    submission_count: int
    results: Optional[ExamResultSet] = None


def rollup_exams(
    entries: Sequence[ExamRollupEntry],
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> CrossExamAggregate:
    graded_entries = [entry for entry in entries if entry.results is not None]

    total_graded = sum(entry.results.summary.graded for entry in graded_entries)
    weighted = sum(
        entry.results.summary.mean * entry.results.summary.graded for entry in graded_entries
    )
    overall_mean = round(weighted / total_graded, 2) if total_graded else 0.0

    distribution: Dict[str, int] = {}
    for entry in graded_entries:
        for label, count in entry.results.summary.distribution.items():
            distribution[label] = distribution.get(label, 0) + count
    counted = sum(distribution.values())
    distribution_percent = {
        label: round(count / counted * 100, 1) if counted else 0.0
        for label, count in distribution.items()
    }

    ordered = sorted(graded_entries, key=lambda entry: entry.exam_id)
    ordered.sort(key=lambda entry: as_utc(entry.results.generated_at), reverse=True)
    recent = [
        RecentEvaluation(
            exam_id=entry.exam_id,
            title=entry.title,
            generated_at=entry.results.generated_at,
            graded_copies=entry.results.summary.graded,
            mean=entry.results.summary.mean,
        )
        for entry in ordered[: max(recent_limit, 0)]
    ]

    return CrossExamAggregate(
        total_exams=len(entries),
        exams_with_results=len(graded_entries),
        total_submissions=sum(entry.submission_count for entry in entries),
        total_graded=total_graded,
        overall_mean=overall_mean,
        distribution=distribution,
        distribution_percent=distribution_percent,
        recent=recent,
    )
