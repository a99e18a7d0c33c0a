"""Application wiring for Transcrify."""

import sys
import logging
from pathlib import Path
from typing import Optional

from .audio import AudioCapture, CaptureSession
from .config import TranscrifyConfig
from .exceptions import ConfigurationError
from .services import Clipboard, SessionController, SessionPublisher, UsageLimiter
from .services.session_controller import MEGABYTE
from .storage import EncryptedCredentialStore, JsonKeyValueStore, RetryStore, TranscriptCache
from .transcription import GroqApiClient, TranscriptionPipeline

logger = logging.getLogger(__name__)


def setup_logging(config: TranscrifyConfig, level: Optional[str] = None) -> None:
    """Set up logging configuration from YAML config."""
    level = level or config.get('logging.level', 'INFO')
    log_file_path = config.get('logging.file_path')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Transcrify starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


class TranscrifyApp:
    """Session scope: builds every collaborator and owns the controller."""

    def __init__(self, config: TranscrifyConfig, clipboard: Optional[Clipboard] = None,
                 capture: Optional[AudioCapture] = None):
        """Initialize application wiring.

        Args:
            config: Loaded configuration
            clipboard: Clipboard adapter; the system clipboard if omitted
            capture: Capture device; built from the audio settings if omitted
        """
        self.config = config
        data_dir = config.get_data_directory()
        data_dir.mkdir(parents=True, exist_ok=True)

        self.store = JsonKeyValueStore(config.get_data_file('state_file'))
        self.limiter = UsageLimiter(
            self.store,
            hourly_cap_seconds=config.get('limits.hourly_seconds'),
            daily_cap_seconds=config.get('limits.daily_seconds'),
        )
        self.retry_store = RetryStore(self.store)
        self.transcript_cache = TranscriptCache(self.store)
        self.credentials = EncryptedCredentialStore(
            config.get_data_file('credentials_file'),
            config.get_data_file('key_file'),
        )

        sample_rate = config.get('audio.sample_rate')
        chunk_size = config.get('audio.chunk_size')
        channels = config.get('audio.channels')
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")
        self.capture = CaptureSession(
            data_dir / "audio",
            capture or AudioCapture(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels),
        )

        self.api_client = GroqApiClient(
            base_url=config.get('groq.base_url'),
            transcription_model=config.get('groq.transcription_model'),
            completion_model=config.get('groq.purification_model'),
            timeout_seconds=config.get('groq.timeout_seconds'),
        )
        self.pipeline = TranscriptionPipeline(
            self.api_client,
            self.api_client,
            temperature=config.get('groq.purification_temperature'),
            max_tokens=config.get('groq.purification_max_tokens'),
        )
        self.publisher = SessionPublisher()
        self.clipboard = clipboard or Clipboard()
        self.controller: Optional[SessionController] = None

    def has_api_key(self) -> bool:
        return bool(self.credentials.get_secret())

    def set_api_key(self, api_key: str) -> None:
        self.credentials.set_secret(api_key)
        logger.info("API key updated" if api_key.strip() else "API key cleared")

    def start(self) -> SessionController:
        """Set up logging and build the controller.

        Raises:
            ConfigurationError: No API key has been stored
        """
        if self.controller is not None:
            return self.controller

        setup_logging(self.config)
        if not self.has_api_key():
            raise ConfigurationError("No API key stored; save the API key first")

        logger.info("Initializing session controller...")
        self.controller = SessionController(
            capture=self.capture,
            pipeline=self.pipeline,
            limiter=self.limiter,
            retry_store=self.retry_store,
            transcript_cache=self.transcript_cache,
            credentials=self.credentials,
            clipboard=self.clipboard,
            publisher=self.publisher,
            poll_interval=self.config.get('session.poll_interval_seconds'),
            max_size_bytes=int(self.config.get('session.max_file_size_mb') * MEGABYTE),
            min_duration_millis=self.config.get('session.min_duration_ms'),
            success_dwell=self.config.get('session.success_dwell_seconds'),
        )
        return self.controller

    def stop(self) -> None:
        if self.controller is None:
            return
        logger.info("Shutting down session controller")
        self.controller.close()
        self.controller = None

    def __enter__(self) -> SessionController:
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
