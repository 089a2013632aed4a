"""
Tests for AES-256-GCM field encryption of secret columns.
"""
import base64

import pytest
from cryptography.exceptions import InvalidTag
from sqlalchemy import text

from services.agent_controller.models import Client
from shared.crypto import FieldEncryptor, load_encryption_key

KEY = b"k" * 32


class TestFieldEncryptor:
    """Stored format and legacy handling."""

    def test_stored_format(self):
        """Ciphertext is iv:tag:data, each part base64."""
        stored = FieldEncryptor(KEY).encrypt("hunter2")
        parts = stored.split(":")
        assert len(parts) == 3
        iv, tag, data = (base64.b64decode(p) for p in parts)
        assert len(iv) == 12
        assert len(tag) == 16
        assert len(data) == len("hunter2")

    def test_round_trip(self):
        """Decrypting returns the original text."""
        encryptor = FieldEncryptor(KEY)
        assert encryptor.decrypt(encryptor.encrypt("pässwörd")) == "pässwörd"

    def test_nonce_is_random(self):
        """The same plaintext encrypts differently each time."""
        encryptor = FieldEncryptor(KEY)
        assert encryptor.encrypt("same") != encryptor.encrypt("same")

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values_pass_through(self, value):
        """None and empty strings are stored as-is."""
        encryptor = FieldEncryptor(KEY)
        assert encryptor.encrypt(value) == value
        assert encryptor.decrypt(value) == value

    def test_legacy_plaintext_passes_through(self):
        """Values not in iv:tag:data form are returned unchanged."""
        assert FieldEncryptor(KEY).decrypt("plain-legacy-secret") == "plain-legacy-secret"

    def test_wrong_key_fails(self):
        """A value sealed with another key does not decrypt."""
        stored = FieldEncryptor(KEY).encrypt("secret")
        with pytest.raises(InvalidTag):
            FieldEncryptor(b"x" * 32).decrypt(stored)


class TestKeyLoading:
    """ENCRYPTION_KEY parsing."""

    def test_valid_key(self):
        """A base64 32-byte key is decoded."""
        assert load_encryption_key(base64.b64encode(KEY).decode()) == KEY

    def test_short_key_rejected(self):
        """Keys that are not 32 bytes are rejected."""
        with pytest.raises(ValueError, match="32 bytes"):
            load_encryption_key(base64.b64encode(b"short").decode())

    def test_not_base64_rejected(self):
        """Non-base64 values are rejected."""
        with pytest.raises(ValueError, match="base64"):
            load_encryption_key("not base64 !!")

    def test_missing_key_uses_development_key(self):
        """An empty value falls back to the development key."""
        assert len(load_encryption_key("")) == 32


class TestEncryptedColumn:
    """EncryptedString through SQLAlchemy."""

    def test_column_is_encrypted_at_rest(self, controller_db):
        """The raw column holds ciphertext; the ORM returns plaintext."""
        with controller_db.session() as session:
            client = Client(
                name="alpha",
                endpoint="https://alpha.example.com",
                authentication_type="api_key",
                api_key="plain-api-key",
            )
            session.add(client)
            session.flush()
            client_id = client.id

        with controller_db.session() as session:
            raw = session.execute(text("SELECT api_key FROM clients")).scalar_one()
            assert raw != "plain-api-key"
            assert len(raw.split(":")) == 3
            assert session.get(Client, client_id).api_key == "plain-api-key"
