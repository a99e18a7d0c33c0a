"""Integration tests: configured app, real stores and capture, local API server."""

import asyncio
import logging
from unittest.mock import Mock

import pytest
from aiohttp import web
from aiohttp import test_utils

from transcrify.app import TranscrifyApp
from transcrify.config import TranscrifyConfig
from transcrify.exceptions import ConfigurationError
from transcrify.models import SessionState, ViewAction
from transcrify.services.usage_limiter import HOURLY


class FakeGroq:
    """Transcription endpoint answering from a queue of (status, payload)."""

    def __init__(self):
        self.responses = []
        self.calls = []

    async def transcriptions(self, request):
        form = await request.post()
        self.calls.append((request.headers.get("Authorization"), form["file"].filename))
        status, payload = self.responses.pop(0) if self.responses else (200, {"text": "ciao mondo"})
        if status != 200:
            return web.Response(status=status, text=payload)
        return web.json_response(payload)

    def app(self):
        app = web.Application()
        app.router.add_post("/openai/v1/audio/transcriptions", self.transcriptions)
        return app


@pytest.fixture
def restore_logging():
    """Undo the root logger changes made by app start-up."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.005)


async def record(controller, millis: int = 100) -> None:
    await controller.start_recording()
    await wait_until(lambda: controller.elapsed_millis >= millis)
    await controller.stop_and_send()


@pytest.mark.integration
class TestSessionFlow:
    """End-to-end recording sessions."""

    def test_start_requires_api_key(self, config_file, restore_logging):
        app = TranscrifyApp(TranscrifyConfig(config_file), clipboard=Mock())

        with pytest.raises(ConfigurationError, match="API key"):
            app.start()

        app.set_api_key("gsk_test")
        assert app.has_api_key() is True
        with app as controller:
            assert controller.state is SessionState.IDLE
        assert app.controller is None

    @pytest.mark.asyncio
    async def test_record_transcribe_and_copy(self, config_file, mock_pyaudio, restore_logging):
        fake = FakeGroq()
        server = test_utils.TestServer(fake.app())
        await server.start_server()
        try:
            config = TranscrifyConfig(config_file)
            config.set('groq.base_url', str(server.make_url("/openai/v1")))
            clipboard = Mock()
            app = TranscrifyApp(config, clipboard=clipboard)
            app.set_api_key("gsk_test")
            controller = app.start()

            await record(controller)

            assert controller.state is SessionState.IDLE
            clipboard.copy.assert_called_once_with("ciao mondo")
            assert app.transcript_cache.get() == "ciao mondo"
            assert fake.calls[0][0] == "Bearer gsk_test"
            assert fake.calls[0][1].startswith("recording_")
            assert app.publisher.drain_actions() == [ViewAction.CLOSE_EXPANDED_VIEW]
            assert app.limiter.window(HOURLY).is_active is True
            assert list((config.get_data_directory() / "audio").iterdir()) == []
            app.stop()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_failure_survives_restart(self, config_file, mock_pyaudio, restore_logging):
        fake = FakeGroq()
        fake.responses.append((429, "Rate limit reached"))
        server = test_utils.TestServer(fake.app())
        await server.start_server()
        try:
            config = TranscrifyConfig(config_file)
            config.set('groq.base_url', str(server.make_url("/openai/v1")))
            app = TranscrifyApp(config, clipboard=Mock())
            app.set_api_key("gsk_test")
            controller = app.start()

            await record(controller)

            assert controller.state is SessionState.ERROR
            assert "429" in controller.error_message
            kept = list((config.get_data_directory() / "audio").iterdir())
            assert len(kept) == 1
            app.stop()
            assert kept[0].exists()

            # A new process over the same data directory resumes the retry
            restarted = TranscrifyApp(config, clipboard=Mock())
            controller = restarted.start()
            assert controller.state is SessionState.IDLE

            await controller.retry_last_audio()

            assert controller.state is SessionState.IDLE
            restarted.clipboard.copy.assert_called_once_with("ciao mondo")
            assert not kept[0].exists()
            assert restarted.retry_store.load() is None
            assert len(fake.calls) == 2
            restarted.stop()
        finally:
            await server.close()
