"""Exceptions raised by the Insights engine."""

from __future__ import annotations


class InsightsError(Exception):
    """Base class for all Insights errors."""


class ProviderError(InsightsError):
    """The embedding service was unreachable or returned an unusable response."""


class IndexUnavailable(InsightsError):
    """Search or rumination was requested before the first successful build."""


class DocumentReadError(InsightsError):
    """A single document could not be read from the document store."""

    def __init__(self, path: str, reason: object | None = None) -> None:
        self.path = path
        message = f"Failed to read {path}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
