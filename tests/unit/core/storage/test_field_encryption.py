"""Tests for FieldEncryptor (Fernet encryption of check-in answers)."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from nestor.core.storage.encryption import EncryptionError, FieldEncryptor


class TestRoundTrip:
    def test_responses_round_trip(self, field_encryptor: FieldEncryptor):
        responses = [
            {"question_id": "2", "response": "poorly_rested"},
            {"question_id": "2.1", "response": ["insomnia"]},
        ]
        token = field_encryptor.encrypt(responses)
        assert "poorly_rested" not in token
        assert field_encryptor.decrypt(token) == responses

    def test_none_maps_to_empty_token(self, field_encryptor: FieldEncryptor):
        assert field_encryptor.encrypt(None) == ""
        assert field_encryptor.decrypt("") is None


class TestErrors:
    @pytest.mark.parametrize("key", ["", "   ", "not-a-fernet-key"])
    def test_bad_key(self, key):
        with pytest.raises(EncryptionError):
            FieldEncryptor(key)

    def test_wrong_key(self, field_encryptor: FieldEncryptor):
        token = field_encryptor.encrypt({"12": ["stressed"]})
        other = FieldEncryptor(Fernet.generate_key().decode())
        with pytest.raises(EncryptionError, match="wrong key"):
            other.decrypt(token)

    def test_unserializable(self, field_encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError, match="Encryption failed"):
            field_encryptor.encrypt({"when": object()})


def test_generate_key_is_usable():
    key = FieldEncryptor.generate_key()
    assert FieldEncryptor(key).decrypt(FieldEncryptor(key).encrypt([1, 2])) == [1, 2]
