"""Agent password generation and bcrypt hashing."""

import secrets
import string

import bcrypt

BCRYPT_ROUNDS = 10
_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = 16) -> str:
    """Random alphanumeric password."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False
