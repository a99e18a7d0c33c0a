"""Transcription module for Transcrify."""

from .base import TranscriptionBackend, CompletionBackend
from .groq_client import GroqApiClient
from .pipeline import TranscriptionPipeline, PURIFICATION_PROMPT

__all__ = [
    "TranscriptionBackend",
    "CompletionBackend",
    "GroqApiClient",
    "TranscriptionPipeline",
    "PURIFICATION_PROMPT",
]
