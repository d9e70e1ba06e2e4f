"""Fernet encryption for check-in answers at rest.

Question responses can reveal symptoms, substance use and mental health, so
they are stored as Fernet tokens. Dates, readiness scores and sync flags stay
in plain columns for range queries.
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
    """Round-trips JSON-serializable values through Fernet tokens.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt([{"question_id": "2", "response": "well_rested"}])
        responses = encryptor.decrypt(token)
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, data: Any) -> str:
        """Serialize ``data`` as compact JSON and encrypt it; ``None`` maps to ""."""
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str) -> Any:
        """Decrypt a token produced by :meth:`encrypt`; "" maps back to ``None``.

        Raises:
            EncryptionError: On a tampered token, a wrong key, or bad JSON.
        """
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
        """Return a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
