"""Transcription-related data models."""

from dataclasses import dataclass
from typing import Optional

from ..exceptions import PurificationDegraded


@dataclass
class PipelineResult:
    """Resolved outcome of one transcription pipeline run."""
    text: str                # Final text: purified, or raw on fallback
    used_fallback: bool = False
    raw_text: str = ""       # Transcript as returned by speech-to-text
    warning: Optional[PurificationDegraded] = None
