"""
Database Field Encryption
Implements AES-256-GCM encryption for secret columns at rest.

Stored format: ``base64(iv):base64(tag):base64(ciphertext)``.
"""

import base64
import binascii
import logging
import os
import secrets

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16

# Deterministic fallback key for local development and tests only
DEVELOPMENT_KEY = b"\x11" * 32


def load_encryption_key(key_b64: str | None) -> bytes:
    """
    Resolve the AES-256 key from its base64 form.

    Args:
        key_b64: Base64 encoded key, usually ENCRYPTION_KEY

    Returns:
        32-byte key; the development key when ``key_b64`` is empty

    Raises:
        ValueError: If the value is not base64 or does not decode to 32 bytes
    """
    if not key_b64:
        return DEVELOPMENT_KEY
    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("ENCRYPTION_KEY must be base64-encoded") from e
    if len(key) != 32:
        raise ValueError("ENCRYPTION_KEY must decode to 32 bytes (AES-256).")
    return key


class FieldEncryptor:
    """AES-256-GCM encryption for database fields"""

    def __init__(self, encryption_key: bytes):
        if len(encryption_key) != 32:
            raise ValueError("Encryption key must be exactly 32 bytes")
        self.cipher = AESGCM(encryption_key)

    def encrypt(self, plaintext: str | None) -> str | None:
        if plaintext is None or plaintext == "":
            return plaintext

        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self.cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag to the ciphertext
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return ":".join(base64.b64encode(part).decode("ascii") for part in (nonce, tag, ciphertext))

    def decrypt(self, stored: str | None) -> str | None:
        """
        Decrypt a stored value.

        Values that are not in ``iv:tag:data`` form are legacy plain text and
        are returned unchanged.
        """
        if stored is None or stored == "":
            return stored

        parts = stored.split(":")
        if len(parts) != 3:
            return stored

        nonce, tag, ciphertext = (base64.b64decode(part) for part in parts)
        return self.cipher.decrypt(nonce, ciphertext + tag, None).decode("utf-8")


# Global encryptor instance
_encryptor: FieldEncryptor | None = None


def configure_field_encryption(key_b64: str | None) -> FieldEncryptor:
    """Initialize the process-wide encryptor used by EncryptedString columns."""
    global _encryptor
    key = load_encryption_key(key_b64)
    if key == DEVELOPMENT_KEY:
        logger.warning("ENCRYPTION_KEY not set; using the development key for secret columns")
    _encryptor = FieldEncryptor(key)
    return _encryptor


def get_field_encryptor() -> FieldEncryptor:
    """Get the global encryptor, initializing it from ENCRYPTION_KEY on first use."""
    if _encryptor is None:
        return configure_field_encryption(os.getenv("ENCRYPTION_KEY"))
    return _encryptor


class EncryptedString(TypeDecorator):
    """String column that is transparently encrypted with AES-256-GCM."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return get_field_encryptor().encrypt(value)

    def process_result_value(self, value, dialect):
        return get_field_encryptor().decrypt(value)
