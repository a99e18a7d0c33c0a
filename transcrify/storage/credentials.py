"""Encrypted at-rest storage for the API key."""

import os
import logging
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptedCredentialStore:
    """Stores one secret string encrypted with a local Fernet key.

    An empty string means "unset": ``get_secret`` returns it when nothing is
    stored or the stored value cannot be decrypted, and ``set_secret('')``
    clears the stored value.
    """

    def __init__(self, secret_path: str, key_path: str):
        """Initialize credential store.

        Args:
            secret_path: File holding the encrypted secret
            key_path: File holding the Fernet key (created on first use)
        """
        self.secret_path = Path(secret_path)
        self.key_path = Path(key_path)

    def _fernet(self) -> Fernet:
        if not self.key_path.exists():
            logger.info(f"Creating credential key at {self.key_path}")
            self._write_private(self.key_path, Fernet.generate_key())
        return Fernet(self.key_path.read_bytes())

    @staticmethod
    def _write_private(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def get_secret(self) -> str:
        if not self.secret_path.exists():
            return ""
        try:
            return self._fernet().decrypt(self.secret_path.read_bytes()).decode('utf-8')
        except (InvalidToken, ValueError, OSError) as e:
            logger.error(f"Error reading stored API key: {e}")
            return ""

    def set_secret(self, secret: str) -> None:
        secret = secret.strip()
        if not secret:
            if self.secret_path.exists():
                self.secret_path.unlink()
            logger.info("API key cleared")
            return
        self._write_private(self.secret_path, self._fernet().encrypt(secret.encode('utf-8')))
        logger.info("API key saved securely")
