"""Fernet encryption for planner values at rest.

Completion history and routine contents are personal health data; when an
encryption key is configured the key-value store seals every value with it.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when sealing or opening a value fails."""


class ValueEncryptor:
    """Seals and opens serialized values with Fernet symmetric encryption.

    Usage::

        encryptor = ValueEncryptor(key="...")
        token = encryptor.seal('{"2024-01-01": {"Cena||magnesium": true}}')
        text = encryptor.open(token)
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Args:
            key: A valid Fernet key string. Generate with
                 :meth:`generate_key`.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def seal(self, plaintext: str) -> str:
        """Encrypt a text value to a Fernet token string."""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def open(self, token: str) -> str:
        """Decrypt a Fernet token back to text.

        Raises:
            EncryptionError: If the token is invalid or was sealed with another key.
        """
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte key."""
        return Fernet.generate_key().decode("utf-8")
