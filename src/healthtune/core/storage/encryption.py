"""Fernet field encryption for raw health values at rest.

The health snapshot behind each mood analysis and per-reading device
metadata are encrypted before they reach SQLite. Mood labels, scores and
the latest metric values stay in clear so they can be queried directly.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Round-trips JSON-serializable values through a Fernet key.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt({"heart_rate": {"value": 72}})
        encryptor.decrypt(token)  # {"heart_rate": {"value": 72}}
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    @classmethod
    def ephemeral(cls) -> FieldEncryptor:
        """Encryptor with a throwaway key; data is unreadable after restart."""
        logger.warning(
            "ENCRYPTION_KEY not set; using an ephemeral key. "
            "Stored health data will not survive a restart."
        )
        return cls(cls.generate_key())

    def encrypt(self, data: Any) -> str:
        """Serialize to compact JSON and encrypt. ``None`` encrypts to ``""``."""
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Inverse of :meth:`encrypt`. Empty tokens decrypt to ``None``."""
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")
