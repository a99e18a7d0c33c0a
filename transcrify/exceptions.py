"""Error taxonomy for Transcrify.

Collaborator failures are mapped into these types at the pipeline and
controller boundaries; the presentation layer only ever sees session state.
"""

from typing import Optional


class TranscrifyError(Exception):
    """Base class for all Transcrify errors."""


class ConfigurationError(TranscrifyError):
    """Configuration file missing, empty or invalid."""


class CaptureError(TranscrifyError):
    """Audio device or permission failure. Fatal to the attempt, nothing to retry."""


class ApiError(TranscrifyError):
    """Non-success response from a remote capability."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"API error {status}: {body}")


class TranscriptionFailed(TranscrifyError):
    """Speech-to-text step failed. The audio file is kept for a manual retry."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidInput(TranscriptionFailed):
    """Audio file missing or empty. Discarded silently, never retried."""


class PurificationDegraded(TranscrifyError):
    """Purification failed; the raw transcript was used instead."""
