"""Unit tests for password hashing and access tokens."""

from datetime import timedelta

from argon2 import PasswordHasher

from app.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    password_needs_rehash,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Dhaka#2026x")

        assert hashed.startswith("$argon2id$")
        assert verify_password("Dhaka#2026x", hashed)
        assert not verify_password("dhaka#2026x", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-hash") is False

    def test_needs_rehash(self):
        weak = PasswordHasher(time_cost=1, memory_cost=8192, parallelism=1).hash("Dhaka#2026x")

        assert password_needs_rehash(weak)
        assert not password_needs_rehash(hash_password("Dhaka#2026x"))


class TestAccessTokens:
    def test_round_trip_claims(self):
        token = create_access_token({"sub": "user-1", "role": "union_admin"})
        payload = decode_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "union_admin"
        assert "exp" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_tampered_token(self):
        token = create_access_token({"sub": "user-1"})
        header_and_payload = token.rsplit(".", 1)[0]

        assert decode_access_token(f"{header_and_payload}.c2lnbmF0dXJl") is None
