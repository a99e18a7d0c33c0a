"""Capture session: owns one audio capture at a time and its output file."""

import random
import string
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .capture import AudioCapture
from ..exceptions import CaptureError

logger = logging.getLogger(__name__)


class CaptureSession:
    """Start/stop wrapper around the capture device.

    Device failures surface as ``CaptureError``. A capture that fails while
    stopping is treated as lost: its partial file is deleted and never retried.
    """

    def __init__(self, audio_dir: str, capture: Optional[AudioCapture] = None):
        """Initialize capture session.

        Args:
            audio_dir: Directory receiving the recorded files
            capture: Capture device; a default 16kHz mono device if omitted
        """
        self.audio_dir = Path(audio_dir)
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        self.capture = capture or AudioCapture()
        self.output_file: Optional[Path] = None
        logger.info(f"CaptureSession initialized with audio dir: {self.audio_dir}")

    @property
    def is_active(self) -> bool:
        return self.capture.is_recording

    def _new_output_file(self) -> Path:
        # Random suffix keeps two recordings within one second apart
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
        return self.audio_dir / f"recording_{timestamp}_{random_suffix}.wav"

    def start(self) -> Path:
        """Start a new capture and return the file being recorded.

        Raises:
            CaptureError: Device or permission failure, or a capture left running
        """
        if self.is_active:
            raise CaptureError("A previous capture is still active")

        output_file = self._new_output_file()
        self.capture.reset()
        try:
            self.capture.start_recording(output_file)
        except Exception as e:
            logger.error(f"Failed to start capture: {e}")
            output_file.unlink(missing_ok=True)
            raise CaptureError(f"Could not start recording: {e}") from e

        self.output_file = output_file
        logger.debug(f"Capture started: {output_file}")
        return output_file

    def stop(self) -> Path:
        """Finalize the capture and return the recorded file.

        Raises:
            CaptureError: Nothing was recording, or the device failed; the
                session is inactive either way
        """
        output_file = self.output_file
        if not self.is_active or output_file is None:
            raise CaptureError("No capture in progress")

        self.output_file = None
        try:
            self.capture.stop_recording()
        except Exception as e:
            logger.error(f"Capture failed on stop, discarding {output_file.name}: {e}")
            output_file.unlink(missing_ok=True)
            raise CaptureError(f"Could not save recording: {e}") from e

        logger.debug(f"Capture stopped: {output_file} ({self.size_bytes()} bytes)")
        return output_file

    def elapsed_millis(self) -> int:
        return self.capture.elapsed_millis()

    def size_bytes(self) -> int:
        return self.capture.size_bytes()

    def release(self) -> None:
        """Free the device. Idempotent; an active capture is finalized and left on disk."""
        if self.is_active:
            logger.info("Releasing active capture")
            try:
                self.stop()
            except CaptureError as e:
                logger.warning(f"Error stopping capture on release: {e}")
        self.capture.reset()
