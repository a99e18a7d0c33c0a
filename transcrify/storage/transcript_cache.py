"""Persisted copy of the last successful transcript."""

from typing import Optional

from .kv_store import JsonKeyValueStore

LAST_TRANSCRIPTION_KEY = "last_transcription"


class TranscriptCache:
    """Last transcript, kept so the copy affordance survives restarts."""

    def __init__(self, store: JsonKeyValueStore):
        self.store = store

    def get(self) -> Optional[str]:
        return self.store.get(LAST_TRANSCRIPTION_KEY)

    def save(self, text: str) -> None:
        self.store.set(LAST_TRANSCRIPTION_KEY, text)

    def has_copyable_text(self) -> bool:
        text = self.get()
        return bool(text and text.strip())
