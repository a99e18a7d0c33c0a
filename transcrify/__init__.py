"""Transcrify: voice clip transcription with usage quotas and crash-safe retry."""

__version__ = "0.1.0"
