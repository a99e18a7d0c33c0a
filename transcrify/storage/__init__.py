"""Persistent storage for Transcrify."""

from .kv_store import JsonKeyValueStore
from .retry_store import RetryStore
from .transcript_cache import TranscriptCache
from .credentials import EncryptedCredentialStore

__all__ = [
    "JsonKeyValueStore",
    "RetryStore",
    "TranscriptCache",
    "EncryptedCredentialStore",
]
