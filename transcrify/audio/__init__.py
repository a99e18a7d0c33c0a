"""Audio capture components."""

from .capture import AudioCapture
from .session import CaptureSession

__all__ = ["AudioCapture", "CaptureSession"]
