"""Unit tests for JWT token creation, decoding, and validation."""

from datetime import timedelta

import pytest
from jose import JWTError, jwt

from app.auth.jwt import create_access_token, decode_token


class TestCreateAccessToken:
    """Test access token creation."""

    def test_contains_type_access(self):
        payload = decode_token(create_access_token("user-123"))
        assert payload["type"] == "access"

    def test_contains_sub_claim(self):
        payload = decode_token(create_access_token("user-abc"))
        assert payload["sub"] == "user-abc"

    def test_contains_iat_and_exp(self):
        payload = decode_token(create_access_token("user-123"))
        assert "iat" in payload
        assert "exp" in payload

    def test_custom_expiry_delta(self):
        token = create_access_token("user-123", expires_delta=timedelta(hours=1))
        assert decode_token(token)["sub"] == "user-123"


class TestDecodeToken:
    """Test token decoding failure modes."""

    def test_expired_token_raises(self):
        token = create_access_token("user-123", expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            decode_token(token)

    def test_wrong_secret_raises(self):
        token = jwt.encode({"sub": "user-123", "type": "access"}, "another-secret", algorithm="HS256")
        with pytest.raises(JWTError):
            decode_token(token)

    def test_garbage_raises(self):
        with pytest.raises(JWTError):
            decode_token("not.a.jwt")