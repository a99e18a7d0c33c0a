"""Capability interfaces consumed by the transcription pipeline."""

from typing import Protocol


class TranscriptionBackend(Protocol):
    """Speech-to-text capability."""

    async def transcribe(self, api_key: str, audio_bytes: bytes, filename: str) -> str:
        """Transcribe encoded audio.

        Returns:
            Transcript text, possibly blank when nothing was said

        Raises:
            ApiError: On a non-success response
        """
        ...


class CompletionBackend(Protocol):
    """Chat-style language model capability."""

    async def complete(self,
                       api_key: str,
                       system_prompt: str,
                       user_text: str,
                       temperature: float = 0.2,
                       max_tokens: int = 6000) -> str:
        """Run one system + user turn and return the assistant text.

        Raises:
            ApiError: On a non-success response
        """
        ...
