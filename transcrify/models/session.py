"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(Enum):
    """States of the recording session controller."""
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    LIMITED_HOURLY = "limited_hourly"
    LIMITED_DAILY = "limited_daily"


class ViewAction(Enum):
    """One-shot events for the presentation layer. Never persisted."""
    CLOSE_EXPANDED_VIEW = "close_expanded_view"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the controller for rendering."""
    state: SessionState
    elapsed_millis: int = 0
    size_bytes: int = 0
    error_message: Optional[str] = None
    notice: Optional[str] = None  # Non-fatal info shown next to a successful result
    limit_status_text: Optional[str] = None
    purification_enabled: bool = False
    show_copy_button: bool = False
