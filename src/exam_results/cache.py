"""Result caches keyed by exam id.

`put` replaces whatever was stored for the exam; there is no merging of
grading runs.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol

from pydantic import ValidationError

from .pydantic_models import ExamResultSet

logger = logging.getLogger(__name__)

KEY_PREFIX = "correction_"


def cache_key(exam_id: str) -> str:
    return f"{KEY_PREFIX}{exam_id}"


class ResultCache(Protocol):
    def get(self, exam_id: str) -> Optional[ExamResultSet]:
        ...

    def put(self, exam_id: str, result_set: ExamResultSet) -> None:
        ...


class InMemoryResultCache:
    """Stores serialized result sets, like the browser's session storage."""

    def __init__(self):
        self._entries: Dict[str, str] = {}

    def get(self, exam_id: str) -> Optional[ExamResultSet]:
        raw = self._entries.get(cache_key(exam_id))
        if raw is None:
            logger.debug("No cached results for exam %s", exam_id)
            return None
        return ExamResultSet.model_validate_json(raw)

    def put(self, exam_id: str, result_set: ExamResultSet) -> None:
        self._entries[cache_key(exam_id)] = result_set.to_json()

    def __len__(self) -> int:
        return len(self._entries)


class JsonDirectoryResultCache:
    """One `correction_<exam id>.json` file per exam."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, exam_id: str) -> Path:
        return self.directory / f"{cache_key(exam_id)}.json"

    def get(self, exam_id: str) -> Optional[ExamResultSet]:
        path = self.path_for(exam_id)
        if not path.exists():
            logger.debug("No cached results for exam %s at %s", exam_id, path)
            return None
        return self._load(path)

    def put(self, exam_id: str, result_set: ExamResultSet) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(exam_id).write_text(result_set.to_json(indent=2), encoding="utf-8")

    def iter_results(self) -> Iterator[ExamResultSet]:
        """Every readable cached result set, in file name order."""
        if not self.directory.is_dir():
            return
        for path in sorted(self.directory.glob(f"{KEY_PREFIX}*.json")):
            result_set = self._load(path)
            if result_set is not None:
                yield result_set

    @staticmethod
    def _load(path: Path) -> Optional[ExamResultSet]:
        try:
            return ExamResultSet.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable cached results %s: %s", path, e)
            return None
