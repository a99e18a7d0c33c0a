"""Services module for Transcrify."""

from .usage_limiter import UsageLimiter
from .publisher import SessionPublisher
from .clipboard import Clipboard
from .session_controller import SessionController, format_duration, format_size

__all__ = [
    "UsageLimiter",
    "SessionPublisher",
    "Clipboard",
    "SessionController",
    "format_duration",
    "format_size",
]
