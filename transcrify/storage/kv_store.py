"""Durable key-value store backed by a single JSON file."""

import os
import json
import logging
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class JsonKeyValueStore:
    """Crash-safe key-value store.

    Every mutation rewrites the whole file through a temporary file, fsync and
    an atomic rename, so a killed process leaves either the old or the new
    contents on disk, never a torn write.
    """

    def __init__(self, path: str):
        """Initialize the store, loading existing contents if present.

        Args:
            path: JSON file holding the persisted keys
        """
        self.path = Path(path)
        self._lock = threading.RLock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, Any] = self._load()
        logger.info(f"JsonKeyValueStore initialized at {self.path} ({len(self._data)} keys)")

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Unreadable state file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"State file {self.path} does not hold an object, starting empty")
            return {}
        return data

    def _flush(self) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def delete(self, key: str) -> None:
        self.update({key: None})

    def update(self, values: Mapping[str, Any]) -> None:
        """Apply several writes in one atomic flush. A value of None deletes the key."""
        with self._lock:
            for key, value in values.items():
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value
            self._flush()
        logger.debug(f"Persisted keys: {sorted(values)}")

    def pop(self, key: str, default: Optional[Any] = None) -> Any:
        """Read and delete a key in one atomic step."""
        with self._lock:
            if key not in self._data:
                return default
            value = self._data.pop(key)
            self._flush()
            return value
