"""Transcription pipeline: speech-to-text, then optional purification."""

import asyncio
import logging
from pathlib import Path

from .base import TranscriptionBackend, CompletionBackend
from ..exceptions import InvalidInput, PurificationDegraded, TranscriptionFailed
from ..models.transcription import PipelineResult

logger = logging.getLogger(__name__)

PURIFICATION_PROMPT = """You are an assistant that cleans up and formats raw automatic speech transcripts.
Take the text provided by the user and:
- rewrite it clearly, grammatically correct and well structured;
- add appropriate punctuation (commas, periods, question marks, etc.);
- split it into logical paragraphs to improve readability;
- fix minor grammatical errors without altering the original meaning;
- keep the language, natural wording and tone of the original speech;
- remove needless repetitions, filler words, hesitations and anything that adds no real content, without changing how the speaker talks;
- keep only the information that actually matters, dropping what is superfluous or redundant.
In other words, make the text more fluent and essential while staying faithful to how it was said.
Do NOT add comments, headings or introductions of your own. Reply ONLY with the purified, condensed text."""


def _preview(text: str) -> str:
    return text[:50] + ("..." if len(text) > 50 else "")


class TranscriptionPipeline:
    """Runs the two remote calls for one attempt.

    Losing the transcript is a hard failure; losing the purification pass is
    not: it degrades to the raw transcript.
    """

    def __init__(self,
                 transcriber: TranscriptionBackend,
                 purifier: CompletionBackend,
                 system_prompt: str = PURIFICATION_PROMPT,
                 temperature: float = 0.2,
                 max_tokens: int = 6000):
        """Initialize transcription pipeline.

        Args:
            transcriber: Speech-to-text capability
            purifier: Chat completion capability used for purification
            system_prompt: Instruction sent as the system turn when purifying
            temperature: Sampling temperature for purification
            max_tokens: Output length bound for purification
        """
        self.transcriber = transcriber
        self.purifier = purifier
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def run(self, api_key: str, audio_file: Path, purify: bool = False) -> PipelineResult:
        """Transcribe ``audio_file`` and optionally purify the result.

        Raises:
            InvalidInput: File missing or empty
            TranscriptionFailed: Speech-to-text call failed
        """
        audio_file = Path(audio_file)
        if not audio_file.is_file() or audio_file.stat().st_size == 0:
            logger.error(f"Audio file does not exist or is empty: {audio_file}")
            raise InvalidInput("Audio file is missing or empty")

        raw_text = await self._transcribe(api_key, audio_file)
        logger.info(f"Raw transcription success: '{_preview(raw_text)}'")

        if not raw_text.strip():
            # Silence is a valid outcome; nothing to purify
            return PipelineResult(text="", raw_text=raw_text)

        if not purify:
            return PipelineResult(text=raw_text.strip(), raw_text=raw_text)

        return await self._purify(api_key, raw_text)

    async def _transcribe(self, api_key: str, audio_file: Path) -> str:
        try:
            audio_bytes = await asyncio.to_thread(audio_file.read_bytes)
            logger.debug(f"Attempting to transcribe file: {audio_file.name}")
            return await self.transcriber.transcribe(api_key, audio_bytes, audio_file.name)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Transcription failed for {audio_file.name}: {e}")
            raise TranscriptionFailed(str(e) or "Transcription error", cause=e) from e

    async def _purify(self, api_key: str, raw_text: str) -> PipelineResult:
        logger.debug("Purification requested. Calling LLM...")
        try:
            purified = await self.purifier.complete(
                api_key,
                self.system_prompt,
                raw_text,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Purification failed, using raw transcript: {e}")
            return self._fallback(raw_text, PurificationDegraded(str(e)))

        if not purified or not purified.strip():
            logger.warning("Purification returned blank text, using raw transcript")
            return self._fallback(raw_text, PurificationDegraded("Blank purification result"))

        logger.info(f"Purification success: '{_preview(purified)}'")
        return PipelineResult(text=purified.strip(), raw_text=raw_text)

    @staticmethod
    def _fallback(raw_text: str, warning: PurificationDegraded) -> PipelineResult:
        return PipelineResult(text=raw_text.strip(), used_fallback=True, raw_text=raw_text, warning=warning)
