"""Groq API client for speech-to-text and chat completions."""

import logging
from typing import List, Optional

import aiohttp
from pydantic import BaseModel

from ..exceptions import ApiError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"


class TranscriptionResponse(BaseModel):
    text: Optional[str] = None


class ChatMessage(BaseModel):
    role: str  # "system", "user", "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: Optional[int] = None
    message: Optional[ChatMessage] = None
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    id: Optional[str] = None
    choices: Optional[List[ChatChoice]] = None


class GroqApiClient:
    """OpenAI-compatible Groq endpoints over aiohttp.

    Implements both ``TranscriptionBackend`` and ``CompletionBackend``.
    """

    def __init__(self,
                 base_url: str = DEFAULT_BASE_URL,
                 transcription_model: str = "whisper-large-v3",
                 completion_model: str = "llama-3.3-70b-versatile",
                 timeout_seconds: float = 60.0):
        """Initialize Groq client.

        Args:
            base_url: API root, without trailing slash
            transcription_model: Speech-to-text model name
            completion_model: Chat model used for purification
            timeout_seconds: Total timeout per request
        """
        self.base_url = base_url.rstrip("/")
        self.transcription_model = transcription_model
        self.completion_model = completion_model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        logger.info(f"GroqApiClient initialized: stt={transcription_model}, llm={completion_model}")

    @staticmethod
    def _headers(api_key: str) -> dict:
        return {"Authorization": f"Bearer {api_key}"}

    @staticmethod
    async def _raise_for_status(response: aiohttp.ClientResponse, what: str) -> None:
        if response.status != 200:
            error_text = await response.text()
            logger.error(f"{what} API error: {response.status} - {error_text}")
            raise ApiError(response.status, error_text)

    async def transcribe(self, api_key: str, audio_bytes: bytes, filename: str) -> str:
        """Send audio to the transcription endpoint.

        Returns:
            Transcript text (may be blank)

        Raises:
            ApiError: Non-200 response
            ValueError: Response without a ``text`` field
        """
        form = aiohttp.FormData()
        form.add_field("file", audio_bytes, filename=filename, content_type="audio/wav")
        form.add_field("model", self.transcription_model)
        form.add_field("response_format", "json")

        logger.debug(f"Transcribing {filename} ({len(audio_bytes)} bytes)")
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{self.base_url}/audio/transcriptions",
                                    headers=self._headers(api_key), data=form) as response:
                await self._raise_for_status(response, "Transcription")
                result = TranscriptionResponse.model_validate(await response.json(content_type=None))

        if result.text is None:
            raise ValueError("Transcription response has no text")
        return result.text

    async def complete(self,
                       api_key: str,
                       system_prompt: str,
                       user_text: str,
                       temperature: float = 0.2,
                       max_tokens: int = 6000) -> str:
        """Send one system + user turn to the chat completions endpoint.

        Returns:
            Content of the first choice, stripped; empty if none
        """
        data = {
            "model": self.completion_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{self.base_url}/chat/completions",
                                    headers=self._headers(api_key), json=data) as response:
                await self._raise_for_status(response, "Chat completion")
                result = ChatCompletionResponse.model_validate(await response.json(content_type=None))

        if not result.choices or result.choices[0].message is None:
            return ""
        return (result.choices[0].message.content or "").strip()
