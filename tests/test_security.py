"""Tests for password hashing and access tokens."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import get_settings
from errors import TokenExpired, TokenInvalid
from security import create_access_token, decode_access_token, hash_password, verify_password


class TestPasswords:
    def test_hash_is_not_plaintext(self):
        digest = hash_password("hunter2")
        assert digest != "hunter2"
        assert digest.startswith("$2")

    def test_verify(self):
        digest = hash_password("hunter2")
        assert verify_password("hunter2", digest)
        assert not verify_password("hunter3", digest)

    def test_unrecognised_digest_does_not_verify(self):
        assert not verify_password("hunter2", "hunter2")
        assert not verify_password("hunter2", "")


class TestTokens:
    def test_roundtrip(self):
        token = create_access_token("abc123")
        assert decode_access_token(token) == "abc123"

    def test_claims_shape(self):
        settings = get_settings()
        token = create_access_token("abc123")
        claims = jwt.decode(token, settings.signing_secret, algorithms=[settings.jwt_algorithm])
        assert claims["user"] == {"id": "abc123"}
        expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        assert timedelta(hours=23) < expires - datetime.now(timezone.utc) <= timedelta(hours=24)

    def test_expired(self):
        token = create_access_token("abc123", expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenExpired) as exc:
            decode_access_token(token)
        assert "expired" in exc.value.message

    def test_tampered(self):
        header, _, signature = create_access_token("abc123").split(".")
        _, payload, _ = create_access_token("someone-else").split(".")
        with pytest.raises(TokenInvalid):
            decode_access_token(".".join([header, payload, signature]))

    def test_foreign_secret(self):
        token = jwt.encode({"user": {"id": "abc123"}}, "someone-else", algorithm="HS256")
        with pytest.raises(TokenInvalid):
            decode_access_token(token)

    def test_missing_user_claim(self):
        settings = get_settings()
        token = jwt.encode({"sub": "abc123"}, settings.signing_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(TokenInvalid):
            decode_access_token(token)

    def test_garbage(self):
        with pytest.raises(TokenInvalid):
            decode_access_token("not-a-token")
