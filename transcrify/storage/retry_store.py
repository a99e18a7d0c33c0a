"""Durable single-slot record of the last failed capture."""

import logging
from typing import Optional

from .kv_store import JsonKeyValueStore

logger = logging.getLogger(__name__)

RETRY_FILE_PATH_KEY = "retry_file_path"


class RetryStore:
    """Remembers which audio file to resubmit, across process restarts."""

    def __init__(self, store: JsonKeyValueStore):
        self.store = store

    def save(self, path: Optional[str]) -> None:
        """Persist the retry path, or clear it when ``path`` is None."""
        self.store.set(RETRY_FILE_PATH_KEY, path)
        if path:
            logger.info(f"Retry path saved: {path}")
        else:
            logger.debug("Retry path cleared")

    def load(self) -> Optional[str]:
        """Take the stored path. Reading clears it, so two resumption paths
        can never submit the same file twice."""
        path = self.store.pop(RETRY_FILE_PATH_KEY)
        logger.debug(f"Retry path taken: {path}")
        return path
