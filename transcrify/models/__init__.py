"""Data models for the Transcrify application."""

from .session import SessionState, ViewAction, SessionSnapshot
from .usage import LimitStatus, UsageWindow
from .transcription import PipelineResult

__all__ = [
    "SessionState",
    "ViewAction",
    "SessionSnapshot",
    "LimitStatus",
    "UsageWindow",
    "PipelineResult",
]
