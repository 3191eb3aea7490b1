"""Tests for auth/passwords.py - hashing and password policy."""

import hashlib

import pytest

from auth.passwords import hash_password, password_meets_policy, sha256_hex, verify_password


class TestHashing:
    def test_argon2id_hash_verifies(self):
        hashed = hash_password("Str0ng!Passw0rd")

        assert hashed.startswith("$argon2id$")
        assert verify_password("Str0ng!Passw0rd", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_empty_hash_never_verifies(self):
        assert verify_password("", "") is False
        assert verify_password("anything", "") is False

    def test_garbage_hash_is_false(self):
        assert verify_password("x", "not-a-hash") is False


class TestPolicy:
    @pytest.mark.parametrize("password", ["Str0ng!Passw0rd", "aB3$aB3$aB"])
    def test_accepts(self, password):
        assert password_meets_policy(password) is True

    @pytest.mark.parametrize("password", [
        "aB3$aB3$a",        # 9 chars
        "lowercase1!x",
        "UPPERCASE1!X",
        "NoDigits!Here",
        "NoSymbols123",
    ])
    def test_rejects(self, password):
        assert password_meets_policy(password) is False

    def test_custom_min_length(self):
        assert password_meets_policy("aB3$aB3$aB", min_length=12) is False


class TestSha256:
    def test_hex_digest(self):
        assert sha256_hex("token") == hashlib.sha256(b"token").hexdigest()
        assert len(sha256_hex("")) == 64
