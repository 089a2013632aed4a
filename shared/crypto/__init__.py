"""
Field-level encryption for secrets stored in service databases.
"""

from shared.crypto.field_encryption import (
    EncryptedString,
    FieldEncryptor,
    configure_field_encryption,
    get_field_encryptor,
    load_encryption_key,
)

__all__ = [
    "EncryptedString",
    "FieldEncryptor",
    "configure_field_encryption",
    "get_field_encryptor",
    "load_encryption_key",
]
