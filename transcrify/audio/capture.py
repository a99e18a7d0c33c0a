"""Audio capture device: pyaudio input streamed straight into a WAV file."""

import time
import wave
import logging
from pathlib import Path
from threading import Thread, Event
from typing import Optional

import pyaudio

logger = logging.getLogger(__name__)

WAV_HEADER_BYTES = 44


class AudioCapture:
    """Records microphone input on a background thread into a WAV file.

    ``elapsed_millis`` and ``size_bytes`` read plain counters updated by the
    recording thread, so they never block and may be called while ``stop``
    is joining the thread.
    """

    STOP_TIMEOUT_SECONDS = 2.0

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz for Whisper compatibility)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False
        self.error: Optional[BaseException] = None

        # Statistics tracking
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self.bytes_written = 0
        self.total_chunks = 0

        # Device resources
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self.wave_file: Optional[wave.Wave_write] = None

    def start_recording(self, output_path: Path) -> None:
        """Open the input stream and start writing frames to ``output_path``.

        Raises:
            RuntimeError: If a recording is already in progress
            OSError: If the device cannot be opened or the file cannot be created
        """
        if self.is_recording:
            raise RuntimeError("Recording already in progress")

        logger.info(f"Starting audio recording into {output_path}")
        self.error = None
        self.bytes_written = 0
        self.total_chunks = 0
        self.stop_time = None
        self.stop_event.clear()

        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            self.stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
            self.wave_file = wave.open(str(output_path), 'wb')
            self.wave_file.setnchannels(self.channels)
            self.wave_file.setsampwidth(self.pyaudio_instance.get_sample_size(self.format))
            self.wave_file.setframerate(self.sample_rate)
        except BaseException:
            self._close_resources()
            raise

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, {self.chunk_size} samples/chunk")
        self.start_time = time.monotonic()
        self.is_recording = True

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()

    def stop_recording(self) -> None:
        """Stop recording, finalize the WAV file and release the device.

        Raises:
            RuntimeError: If the recording thread failed; the file is then unusable
        """
        if not self.is_recording:
            logger.warning("No recording in progress")
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=self.STOP_TIMEOUT_SECONDS)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
                if self.error is None:
                    self.error = RuntimeError("recording thread did not stop")
                # The thread still owns the stream and writer; leave them to it
                self.stream = None
                self.wave_file = None

        self.stop_time = time.monotonic()
        self.is_recording = False
        try:
            self._close_resources()
        finally:
            logger.info(f"Recording stopped. Total chunks: {self.total_chunks}, bytes: {self.size_bytes()}")

        if self.error is not None:
            raise RuntimeError(f"Audio capture failed: {self.error}") from self.error

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        stream, wave_file = self.stream, self.wave_file
        try:
            while not self.stop_event.is_set():
                audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                wave_file.writeframes(audio_chunk)
                self.total_chunks += 1
                self.bytes_written += len(audio_chunk)
        except Exception as e:
            logger.error(f"Audio capture thread failed: {e}", exc_info=True)
            self.error = e

    def _close_resources(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.wave_file is not None:
            try:
                self.wave_file.close()
            except Exception as e:
                logger.warning(f"Error closing WAV file: {e}")
                if self.error is None:
                    self.error = e
            self.wave_file = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def elapsed_millis(self) -> int:
        if self.start_time is None:
            return 0
        end = self.stop_time if self.stop_time is not None else time.monotonic()
        return int((end - self.start_time) * 1000)

    def size_bytes(self) -> int:
        if self.start_time is None:
            return 0
        return WAV_HEADER_BYTES + self.bytes_written

    def reset(self) -> None:
        """Forget the statistics of the previous recording."""
        self.start_time = None
        self.stop_time = None
        self.bytes_written = 0
        self.total_chunks = 0

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self.stop_event.set()
