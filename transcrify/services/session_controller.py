"""Recording session controller.

Finite state machine that drives one recording-to-transcript attempt at a
time::

    IDLE / LIMITED_* --start_recording--> RECORDING
    RECORDING --stop_and_send / size ceiling--> PROCESSING
    PROCESSING --pipeline ok--> SUCCESS --1s--> IDLE / LIMITED_*
    PROCESSING --pipeline failed--> ERROR --retry_last_audio--> PROCESSING
    RECORDING / PROCESSING / ERROR --cancel_operation--> IDLE / LIMITED_*

All mutation happens on the asyncio loop that calls the public coroutines.
Every awaited step captures the current generation; ``cancel_operation`` and
``close`` bump it, so a task that resumes after being superseded never writes
to controller state.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from ..audio.session import CaptureSession
from ..exceptions import CaptureError, InvalidInput, TranscriptionFailed
from ..models.session import SessionSnapshot, SessionState, ViewAction
from ..models.transcription import PipelineResult
from ..models.usage import LimitStatus
from ..storage.retry_store import RetryStore
from ..storage.transcript_cache import TranscriptCache
from ..transcription.pipeline import TranscriptionPipeline
from .publisher import SessionPublisher
from .usage_limiter import UsageLimiter

logger = logging.getLogger(__name__)

MEGABYTE = 1024 * 1024

LIMIT_STATES = {
    LimitStatus.OK: (SessionState.IDLE, None),
    LimitStatus.HOURLY_EXCEEDED: (SessionState.LIMITED_HOURLY, "Hourly limit reached"),
    LimitStatus.DAILY_EXCEEDED: (SessionState.LIMITED_DAILY, "Daily limit reached"),
}

CANCELLABLE_STATES = (SessionState.RECORDING, SessionState.PROCESSING, SessionState.ERROR)
RETRYABLE_STATES = (SessionState.ERROR, SessionState.IDLE,
                    SessionState.LIMITED_HOURLY, SessionState.LIMITED_DAILY)

FALLBACK_NOTICE = "Purification failed, raw transcript used."
NO_RETRY_AUDIO = "No audio to retry"


def format_duration(millis: int) -> str:
    """Format a duration as MM:SS."""
    seconds = max(millis, 0) // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_size(size_bytes: int) -> str:
    """Format a byte count as megabytes with one decimal."""
    return f"{size_bytes / MEGABYTE:.1f} MB"


class SecretSource(Protocol):
    def get_secret(self) -> str: ...


class ClipboardSink(Protocol):
    def copy(self, text: str) -> bool: ...


def _delete(path: Optional[Union[str, Path]]) -> None:
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not delete audio file {path}: {e}")


class SessionController:
    """Owns the life cycle of a single recording/transcription attempt."""

    def __init__(self,
                 capture: CaptureSession,
                 pipeline: TranscriptionPipeline,
                 limiter: UsageLimiter,
                 retry_store: RetryStore,
                 transcript_cache: TranscriptCache,
                 credentials: SecretSource,
                 clipboard: ClipboardSink,
                 publisher: Optional[SessionPublisher] = None,
                 poll_interval: float = 0.5,
                 max_size_bytes: int = 39 * MEGABYTE,
                 min_duration_millis: int = 50,
                 success_dwell: float = 1.0):
        """Initialize the controller and derive the initial state from the quota.

        Args:
            capture: Capture session recording the audio
            pipeline: Transcription pipeline
            limiter: Usage quota tracker
            retry_store: Durable record of the last failed file
            transcript_cache: Persisted last transcript
            credentials: Source of the API key
            clipboard: Receives each successful transcript
            publisher: State/event publisher for the presentation layer
            poll_interval: Seconds between capture polls while recording
            max_size_bytes: Recording size that triggers an automatic stop
            min_duration_millis: Recordings shorter than this are discarded
            success_dwell: Seconds spent in SUCCESS before moving on
        """
        self._capture = capture
        self._pipeline = pipeline
        self._limiter = limiter
        self._retry_store = retry_store
        self._transcript_cache = transcript_cache
        self._credentials = credentials
        self._clipboard = clipboard
        self._publisher = publisher or SessionPublisher()
        self._poll_interval = poll_interval
        self._max_size_bytes = max_size_bytes
        self._min_duration_millis = min_duration_millis
        self._success_dwell = success_dwell

        self._state = SessionState.IDLE
        self.elapsed_millis = 0
        self.size_bytes = 0
        self.error_message: Optional[str] = None
        self.notice: Optional[str] = None
        self.limit_status_text: Optional[str] = None
        self.purification_enabled = False
        self.show_copy_button = transcript_cache.has_copyable_text()

        self._current_audio: Optional[Path] = None
        self._retry_audio: Optional[Path] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._work_task: Optional[asyncio.Task] = None
        self._auto_stop_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._closed = False

        logger.debug("Checking limits on init...")
        self._refresh_state()
        logger.info(f"SessionController initialized in state {self._state.value}")

    @property
    def state(self) -> SessionState:
        return self._state

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            elapsed_millis=self.elapsed_millis,
            size_bytes=self.size_bytes,
            error_message=self.error_message,
            notice=self.notice,
            limit_status_text=self.limit_status_text,
            purification_enabled=self.purification_enabled,
            show_copy_button=self.show_copy_button,
        )

    def toggle_purification(self, enabled: bool) -> None:
        self.purification_enabled = enabled
        logger.debug(f"Purification enabled: {enabled}")

    def copy_last_transcript(self) -> bool:
        """Copy the cached transcript to the clipboard again."""
        text = self._transcript_cache.get()
        if not text or not text.strip():
            logger.warning("copy_last_transcript called but no text available.")
            return False
        return self._clipboard.copy(text)

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.info(f"State: {self._state.value} -> {state.value}")
        self._state = state
        self._publisher.publish_state(state)

    def _refresh_state(self) -> None:
        """Re-derive the resting state from the usage quota."""
        state, text = LIMIT_STATES[self._limiter.check()]
        self.limit_status_text = text
        self._set_state(state)

    def _still_relevant(self, token: int) -> bool:
        return token == self._generation and not self._closed

    def _reset_progress(self) -> None:
        self.elapsed_millis = 0
        self.size_bytes = 0

    def _cancel_tasks(self) -> None:
        try:
            current = asyncio.current_task()
        except RuntimeError:
            # close() may run after the loop has stopped
            current = None
        for task in (self._poll_task, self._work_task, self._auto_stop_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._poll_task = None
        self._work_task = None
        self._auto_stop_task = None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def start_recording(self) -> None:
        """Start a new capture if the quota allows it."""
        logger.debug("start_recording called")
        if self._state in (SessionState.RECORDING, SessionState.PROCESSING, SessionState.SUCCESS):
            logger.warning(f"start_recording ignored in state {self._state.value}")
            return

        if self._limiter.check() is not LimitStatus.OK:
            logger.warning("Attempted to record but limits reached.")
            self._refresh_state()
            return

        logger.debug("Cleaning up previous audio files before recording...")
        stored = self._retry_store.load()
        for path in (self._current_audio, self._retry_audio, stored):
            _delete(path)
        self._current_audio = None
        self._retry_audio = None
        self.error_message = None
        self.notice = None
        self._reset_progress()

        try:
            self._current_audio = self._capture.start()
        except CaptureError as e:
            logger.error(f"Failed to start recording: {e}")
            self.error_message = str(e)
            self._set_state(SessionState.ERROR)
            return

        self._set_state(SessionState.RECORDING)
        self._poll_task = asyncio.create_task(self._poll_capture(self._generation))
        logger.info(f"Recording started: {self._current_audio}")

    async def _poll_capture(self, token: int) -> None:
        while self._state is SessionState.RECORDING and self._still_relevant(token):
            try:
                self.elapsed_millis = self._capture.elapsed_millis()
                self.size_bytes = self._capture.size_bytes()
            except Exception as e:
                logger.error(f"Capture poll failed: {e}", exc_info=True)
                await asyncio.sleep(self._poll_interval)
                continue
            self._publisher.publish_progress(self.elapsed_millis, self.size_bytes)

            if self.size_bytes >= self._max_size_bytes:
                logger.warning(f"Max file size reached ({format_size(self.size_bytes)}). Stopping recording.")
                self._poll_task = None
                self._auto_stop_task = asyncio.create_task(self.stop_and_send())
                return

            await asyncio.sleep(self._poll_interval)
        logger.debug("Recording update loop finished.")

    async def stop_and_send(self) -> None:
        """Stop the capture and transcribe it."""
        logger.debug("stop_and_send called")
        if self._state is not SessionState.RECORDING:
            logger.warning("stop_and_send called but not in RECORDING state.")
            return

        if self._poll_task is not None and self._poll_task is not asyncio.current_task():
            self._poll_task.cancel()
        self._poll_task = None
        token = self._generation
        purify = self.purification_enabled

        try:
            audio_file = self._capture.stop()
        except CaptureError as e:
            logger.error(f"stop_and_send: recording lost: {e}")
            self._current_audio = None
            self.error_message = str(e)
            self._reset_progress()
            self._set_state(SessionState.ERROR)
            return

        duration_millis = self._capture.elapsed_millis()
        self._current_audio = audio_file

        if duration_millis < self._min_duration_millis:
            logger.warning(f"Recording too short ({duration_millis}ms). Deleting file.")
            _delete(audio_file)
            self._current_audio = None
            self._reset_progress()
            self._refresh_state()
            return

        self._set_state(SessionState.PROCESSING)
        logger.debug(f"Processing audio file: {audio_file.name}, duration: {duration_millis}ms")
        await self._run_attempt(token, audio_file, purify, usage_millis=duration_millis)

    # ------------------------------------------------------------------
    # Retry and cancellation
    # ------------------------------------------------------------------

    async def retry_last_audio(self) -> None:
        """Resubmit the last failed file, from memory or from the retry store."""
        logger.debug("retry_last_audio called")
        if self._state not in RETRYABLE_STATES:
            logger.warning(f"Retry ignored in state {self._state.value}")
            return

        audio_file = self._retry_audio if self._retry_audio and self._retry_audio.exists() else None
        if audio_file is None:
            logger.debug("In-memory retry file missing, checking retry store...")
            stored = self._retry_store.load()
            if stored and Path(stored).exists():
                audio_file = Path(stored)

        if audio_file is None:
            logger.warning("Retry: no valid audio file found in memory or in the retry store.")
            self._retry_audio = None
            self._refresh_state()
            self.error_message = NO_RETRY_AUDIO
            return

        token = self._generation
        purify = self.purification_enabled
        self._retry_audio = audio_file
        self.error_message = None
        self.notice = None
        self._set_state(SessionState.PROCESSING)
        logger.info(f"Retrying audio file: {audio_file.name}, purify: {purify}")
        # Usage is not recorded for retries; the failed attempt was never billed
        await self._run_attempt(token, audio_file, purify, usage_millis=None)

    async def cancel_operation(self) -> None:
        """Abort whatever is in flight and return to the resting state."""
        if self._state not in CANCELLABLE_STATES:
            logger.debug(f"cancel_operation: nothing to cancel in state {self._state.value}")
            return

        logger.info(f"cancel_operation called, current state: {self._state.value}")
        self._generation += 1
        self._cancel_tasks()

        if self._capture.is_active:
            try:
                _delete(self._capture.stop())
            except CaptureError as e:
                logger.warning(f"Error stopping recorder on cancel: {e}")

        stored = self._retry_store.load()
        for path in (self._current_audio, self._retry_audio, stored):
            _delete(path)
        self._current_audio = None
        self._retry_audio = None

        self.error_message = None
        self.notice = None
        self._reset_progress()
        self._refresh_state()
        logger.debug("Operation cancelled, state reset.")

    def close(self) -> None:
        """Tear down: cancel pending work and release the device.

        Audio files stay on disk so a failed attempt can be retried after restart.
        """
        if self._closed:
            return
        logger.debug("close called - releasing resources")
        self._closed = True
        self._generation += 1
        self._cancel_tasks()
        self._capture.release()

    # ------------------------------------------------------------------
    # Attempt resolution
    # ------------------------------------------------------------------

    async def _run_attempt(self, token: int,
                           audio_file: Path,
                           purify: bool,
                           usage_millis: Optional[int]) -> None:
        work = asyncio.create_task(self._resolve(token, audio_file, purify, usage_millis))
        self._work_task = work
        try:
            await asyncio.wait({work})
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            if self._work_task is work:
                self._work_task = None

        if work.cancelled():
            logger.info("Attempt cancelled")
            return
        error = work.exception()
        if error is not None:
            logger.error(f"Unexpected error while resolving attempt: {error}", exc_info=error)
            if not self._still_relevant(token):
                return
            if self._state is SessionState.PROCESSING:
                self._fail(audio_file, f"Error: {error}")
            elif self._state is SessionState.SUCCESS:
                # Transcript already delivered and the file deleted; nothing to retry
                self._refresh_state()

    async def _resolve(self, token: int,
                       audio_file: Path,
                       purify: bool,
                       usage_millis: Optional[int]) -> None:
        api_key = self._credentials.get_secret()
        try:
            result = await self._pipeline.run(api_key, audio_file, purify)
        except InvalidInput as e:
            if self._still_relevant(token):
                logger.warning(f"Discarding unusable recording {audio_file.name}: {e}")
                _delete(audio_file)
                self._current_audio = None
                self._retry_audio = None
                self._reset_progress()
                self._refresh_state()
            return
        except TranscriptionFailed as e:
            if self._still_relevant(token):
                self._fail(audio_file, str(e) or "Transcription error")
            return

        if not self._still_relevant(token):
            return
        self._succeed(audio_file, result, usage_millis)

        await asyncio.sleep(self._success_dwell)
        if not self._still_relevant(token):
            return
        self._publisher.publish_action(ViewAction.CLOSE_EXPANDED_VIEW)
        self._refresh_state()

    def _succeed(self, audio_file: Path, result: PipelineResult, usage_millis: Optional[int]) -> None:
        text = result.text
        logger.info(f"Attempt succeeded ({len(text)} chars, fallback={result.used_fallback})")
        self._transcript_cache.save(text)
        if text.strip():
            self._clipboard.copy(text)
        self.show_copy_button = self._transcript_cache.has_copyable_text()

        if usage_millis is not None:
            self._limiter.record(usage_millis)

        _delete(audio_file)
        self._current_audio = None
        self._retry_audio = None
        self._retry_store.save(None)

        self.error_message = None
        self.notice = FALLBACK_NOTICE if result.used_fallback else None
        self._reset_progress()
        self._set_state(SessionState.SUCCESS)

    def _fail(self, audio_file: Path, message: str) -> None:
        logger.error(f"Transcription failed, keeping {audio_file.name} for retry: {message}")
        self.error_message = message
        self._current_audio = None
        self._retry_audio = audio_file
        self._retry_store.save(str(audio_file))
        self._reset_progress()
        self._set_state(SessionState.ERROR)
