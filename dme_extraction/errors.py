"""
Error taxonomy for DME order extraction.

Callers distinguish failures by type: ``InvalidInput`` is never worth
retrying, ``UpstreamError`` means the text-completion provider let us down,
and the I/O errors belong to the surrounding pipeline.
"""

from typing import Optional


class ExtractionError(Exception):
    """Base class for all errors raised by this package."""


class InvalidInput(ExtractionError, ValueError):
    """Note text was empty or whitespace-only."""


class UpstreamError(ExtractionError):
    """The text-completion provider failed or returned unusable content."""

    def __init__(self, message: str, reason: str = "provider"):
        super().__init__(message)
        self.reason = reason


class NoteReadError(ExtractionError):
    """A physician note could not be located or read."""


class SubmissionError(ExtractionError):
    """The downstream order API rejected or never received a record."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(ExtractionError, ValueError):
    """Configuration is missing something the requested command needs."""


def failure_kind(error: Exception) -> str:
    """Categorize a per-note failure for run summaries."""
    if isinstance(error, InvalidInput):
        return "invalid_input"
    if isinstance(error, UpstreamError):
        return f"upstream_{error.reason}"
    if isinstance(error, NoteReadError):
        return "read_error"
    if isinstance(error, SubmissionError):
        return "submission_error"
    return "unexpected_error"
