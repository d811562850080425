"""Exceptions raised by the result aggregation engine."""

from __future__ import annotations


class ExamResultsError(Exception):
    """Base class for every error raised by this package."""


class MalformedResponseError(ExamResultsError, ValueError):
    """The grading response is not a mapping, or its `resultat` field is not one."""


class UnresolvableCopyError(ExamResultsError):
    """A single raw copy entry could not be parsed.

    These are collected next to the normalized output and never abort the batch.
    """

    def __init__(self, copy_key: str, reason: str):
        super().__init__(f"{copy_key}: {reason}")
        self.copy_key = copy_key
        self.reason = reason


class InconsistentBandConfigurationError(ExamResultsError, ValueError):
    """Band boundaries are empty, unordered, or lack a 0-threshold band."""


class UnbandedScoreError(ExamResultsError):
    """A percentage did not fall in any configured band."""


class GradingServiceError(ExamResultsError, RuntimeError):
    """The external grading service could not be reached or answered with an error."""
