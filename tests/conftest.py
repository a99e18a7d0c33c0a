"""Pytest configuration and fixtures for Transcrify tests."""

import time
import uuid
import wave
import logging
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import numpy as np
import pytest
import yaml
from pubsub import pub

from transcrify.exceptions import CaptureError
from transcrify.models import PipelineResult
from transcrify.services import SessionController, SessionPublisher, UsageLimiter
from transcrify.storage import JsonKeyValueStore, RetryStore, TranscriptCache


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

START_MILLIS = 1_700_000_000_000


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def sample_audio_file(temp_data_dir, sample_audio_chunk):
    """Create a sample WAV file for testing."""
    file_path = Path(temp_data_dir) / "test_audio.wav"

    with wave.open(str(file_path), 'wb') as wf:
        wf.setnchannels(1)  # Mono
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(16000)  # 16kHz

        for _ in range(20):  # ~1.3 seconds of audio
            wf.writeframes(sample_audio_chunk)

    return file_path


@pytest.fixture
def mock_pyaudio(sample_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read_chunk(*args, **kwargs):
            # Pace the capture thread like a real device would
            time.sleep(0.005)
            return sample_audio_chunk

        mock_stream.read.side_effect = read_chunk
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now: int = START_MILLIS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


@pytest.fixture
def fake_clock():
    return FakeClock()


class FakeCapture:
    """In-memory stand-in for CaptureSession that writes small real files."""

    def __init__(self, audio_dir: Path):
        self.audio_dir = Path(audio_dir)
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        self.is_active = False
        self.output_file = None
        self.elapsed = 0
        self.size = 0
        self.start_count = 0
        self.released = False
        self.fail_on_start = False
        self.fail_on_stop = False

    def start(self) -> Path:
        if self.fail_on_start:
            raise CaptureError("Could not start recording: microphone permission denied")
        if self.is_active:
            raise CaptureError("A previous capture is still active")
        self.start_count += 1
        self.output_file = self.audio_dir / f"recording_{self.start_count}.wav"
        self.output_file.write_bytes(b"RIFF" + b"\x00" * 200)
        self.is_active = True
        self.elapsed = 0
        self.size = 44
        return self.output_file

    def stop(self) -> Path:
        if not self.is_active:
            raise CaptureError("No capture in progress")
        self.is_active = False
        output_file, self.output_file = self.output_file, None
        if self.fail_on_stop:
            output_file.unlink()
            raise CaptureError("Could not save recording: device lost")
        return output_file

    def elapsed_millis(self) -> int:
        return self.elapsed

    def size_bytes(self) -> int:
        return self.size

    def release(self) -> None:
        if self.is_active:
            self.stop()
        self.released = True


@pytest.fixture
def fake_capture(temp_data_dir):
    return FakeCapture(Path(temp_data_dir) / "audio")


@pytest.fixture
def session_env(temp_data_dir, fake_clock, fake_capture):
    """Collaborators for a SessionController with fakes at the device and network edges.

    Call ``env.build(**overrides)`` to construct the controller; state changes
    published by it are collected in ``env.states``.
    """
    data_dir = Path(temp_data_dir)
    store = JsonKeyValueStore(data_dir / "state.json")
    env = SimpleNamespace(
        data_dir=data_dir,
        store=store,
        clock=fake_clock,
        limiter=UsageLimiter(store, clock=fake_clock),
        retry_store=RetryStore(store),
        transcript_cache=TranscriptCache(store),
        capture=fake_capture,
        pipeline=Mock(),
        credentials=Mock(),
        clipboard=Mock(),
        # Unique topic per test keeps pubsub listeners isolated
        publisher=SessionPublisher(topic=f"session_{uuid.uuid4().hex}"),
        states=[],
        controller=None,
    )
    env.pipeline.run = AsyncMock(return_value=PipelineResult(text="Hello world", raw_text="hello world"))
    env.credentials.get_secret.return_value = "test-key"
    env.clipboard.copy.return_value = True

    def on_state(state):
        env.states.append(state)

    # pubsub keeps weak references; the namespace keeps the listener alive
    env.on_state = on_state
    pub.subscribe(on_state, env.publisher.state_topic)

    def build(**overrides):
        params = dict(poll_interval=0.01, success_dwell=0.05)
        params.update(overrides)
        env.controller = SessionController(
            capture=env.capture,
            pipeline=env.pipeline,
            limiter=env.limiter,
            retry_store=env.retry_store,
            transcript_cache=env.transcript_cache,
            credentials=env.credentials,
            clipboard=env.clipboard,
            publisher=env.publisher,
            **params
        )
        return env.controller

    env.build = build
    yield env
    pub.unsubscribe(on_state, env.publisher.state_topic)


@pytest.fixture
def config_file(temp_data_dir):
    """Write a minimal config file into the temp dir and return its path."""
    config_path = Path(temp_data_dir) / "transcrify.yaml"
    config = {
        'storage': {'data_directory': 'data'},
        'limits': {'hourly_seconds': 7200, 'daily_seconds': 28000},
        'session': {'success_dwell_seconds': 0.05, 'poll_interval_seconds': 0.01},
        'logging': {'level': 'DEBUG', 'file_path': 'data/logs/test.log', 'console_output': False},
    }
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config, f)
    return config_path
