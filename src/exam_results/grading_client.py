"""HTTP client for the external grading service."""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from .errors import GradingServiceError
from .schemas import Exam
from .settings import resolve_api_base

logger = logging.getLogger(__name__)

FilePart = Tuple[str, Tuple[str, bytes, str]]


class GradingApiClient:
    """Minimal wrapper around the grading API (`/api/full`, `/api/results`)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or resolve_api_base()).rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        logger.debug("Grading API base URL: %s", self.base_url)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GradingApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def submit_files(self, paths: Sequence[Path]) -> Dict[str, Any]:
        parts: List[FilePart] = []
        for path in paths:
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            parts.append(("files", (path.name, Path(path).read_bytes(), content_type)))
        return self._submit(parts)

    def submit_remote_urls(self, urls: Sequence[Tuple[str, Optional[str]]]) -> Dict[str, Any]:
        """Download each URL and submit the files in the given order."""
        parts: List[FilePart] = []
        for url, filename in urls:
            response = self._request("GET", url)
            name = filename or url.rstrip("/").rsplit("/", 1)[-1] or "file"
            content_type = response.headers.get("content-type", "application/octet-stream")
            parts.append(("files", (name, response.content, content_type)))
        return self._submit(parts)

    def get_results(self) -> Dict[str, Any]:
        return self._json(self._request("GET", "/api/results"))

    def _submit(self, parts: List[FilePart]) -> Dict[str, Any]:
        if not parts:
            raise ValueError("At least one file is required for a grading request.")
        logger.info("Submitting %d file(s) for grading", len(parts))
        return self._json(self._request("POST", "/api/full", files=parts))

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GradingServiceError(
                f"{method} {url} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise GradingServiceError(f"{method} {url} failed: {e}") from e
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise GradingServiceError(f"Grading service returned invalid JSON: {e}") from e


class HttpGradingProvider:
    """Grades an exam by sending its submissions to the grading API in order."""

    def __init__(self, client: GradingApiClient):
        self.client = client

    def grade(self, exam: Exam) -> Dict[str, Any]:
        missing = [s.id for s in exam.submissions if not s.storage_location]
        if missing:
            raise ValueError(f"Submissions without a storage location: {missing}")
        urls = [(s.storage_location, s.display_name or None) for s in exam.submissions]
        return self.client.submit_remote_urls(urls)
