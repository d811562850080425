"""Response Normalizer.

Turns a raw grading-service response into `NormalizedCopy` records, each
resolved back to the submission it was graded from. Resolution tries, in
order:

1. the copy's position in the submission list (the trailing number of the
   raw key, `copie_3` -> third submission, or the entry's position in the
   mapping when the key carries no number);
2. the file name embedded in the entry (`nom_fichier`);
3. nothing: the raw key itself becomes the student label.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional, Sequence

from .errors import MalformedResponseError, UnresolvableCopyError
from .pydantic_models import CachedCopy, RawCopy, RawCopyEntry, parse_copy_entry
from .schemas import (
    QUESTION_TYPES,
    NormalizationResult,
    NormalizedCopy,
    QuestionResult,
    ScoringConfiguration,
    Submission,
)

logger = logging.getLogger(__name__)

OCR_PLACEHOLDER = "Extraite par OCR"

_KEY_NUMBER = re.compile(r"(\d+)\s*$")


def normalize_response(
    raw: Any,
    submissions: Sequence[Submission],
    config: ScoringConfiguration,
) -> NormalizationResult:
    """Normalize every copy in `raw`, collecting per-copy failures.

    Raises MalformedResponseError only when `raw` (or its `resultat` field)
    is not a mapping.
    """
    if not isinstance(raw, Mapping):
        raise MalformedResponseError(
            f"Grading response must be an object, got {type(raw).__name__}."
        )
    entries = raw.get("resultat")
    if entries is None:
        logger.warning("Grading response has no 'resultat' field; no copies to normalize.")
        entries = {}
    if not isinstance(entries, Mapping):
        raise MalformedResponseError(
            f"Grading response 'resultat' must be an object, got {type(entries).__name__}."
        )

    result = NormalizationResult()
    for position, (raw_key, data) in enumerate(entries.items()):
        key = str(raw_key)
        try:
            entry = parse_copy_entry(data)
        except ValueError as exc:
            error = UnresolvableCopyError(key, _summarize_error(exc))
            logger.warning("Skipping copy %s: %s", key, error.reason)
            result.errors.append(error)
            continue
        result.copies.append(_normalize_entry(key, position, entry, submissions, config))
    return result


def resolve_submission(
    key: str,
    position: int,
    file_name: Optional[str],
    submissions: Sequence[Submission],
) -> Optional[Submission]:
    match = _KEY_NUMBER.search(key)
    index = int(match.group(1)) - 1 if match else position
    if 0 <= index < len(submissions):
        return submissions[index]
    if file_name:
        for submission in submissions:
            if submission.display_name == file_name:
                return submission
    return None


def normalize_type(value: Optional[str]) -> str:
    candidate = (value or "").strip().lower()
    return candidate if candidate in QUESTION_TYPES else "auto"


def _normalize_entry(
    key: str,
    position: int,
    entry: RawCopyEntry,
    submissions: Sequence[Submission],
    config: ScoringConfiguration,
) -> NormalizedCopy:
    if isinstance(entry, CachedCopy):
        embedded_name, embedded_id = entry.student_name, entry.id
        questions = _questions_from_cache(entry, config)
        reported_total = entry.note
    else:
        embedded_name, embedded_id = entry.nom_fichier, entry.db_id
        questions = _questions_from_live(entry, config)
        reported_total = entry.note_totale

    submission = resolve_submission(key, position, embedded_name, submissions)
    if submission is not None and submission.display_name:
        label = submission.display_name
    else:
        label = embedded_name or key
    copy_id = embedded_id or (submission.id if submission is not None else key)

    return NormalizedCopy(
        key=key,
        id=copy_id,
        student_label=label,
        questions=questions,
        reported_total=reported_total,
        submission=submission,
    )


def _questions_from_live(entry: RawCopy, config: ScoringConfiguration) -> List[QuestionResult]:
    count = len(entry.questions)
    questions = []
    for index, question in enumerate(entry.questions):
        number = question.num if question.num is not None else index + 1
        questions.append(
            QuestionResult(
                question_number=number,
                type=normalize_type(question.type),
                awarded_points=question.point,
                max_points=_max_points(question.max_points, number, count, config),
                extracted_answer=question.reponse or OCR_PLACEHOLDER,
                comment=question.commentaire or None,
            )
        )
    return questions


def _questions_from_cache(entry: CachedCopy, config: ScoringConfiguration) -> List[QuestionResult]:
    count = len(entry.details)
    return [
        QuestionResult(
            question_number=detail.question,
            type=normalize_type(detail.type),
            awarded_points=detail.points,
            max_points=_max_points(detail.max_points, detail.question, count, config),
            extracted_answer=detail.reponse or OCR_PLACEHOLDER,
            comment=detail.comment or None,
        )
        for detail in entry.details
    ]


def _max_points(
    explicit: Optional[float],
    number: int,
    count: int,
    config: ScoringConfiguration,
) -> float:
    if explicit is not None and explicit > 0:
        return explicit
    return config.default_max_points(number, count)


def _summarize_error(exc: ValueError) -> str:
    errors = getattr(exc, "errors", None)
    if callable(errors):
        # pydantic ValidationError: report the first failing field
        first = errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", str(exc))
    return str(exc)
