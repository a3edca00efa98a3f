"""JWT access tokens issued by the platform's auth service.

Billing only needs to verify tokens; ``create_access_token`` is kept for the
seed script and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from app.config import settings


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token for ``user_id`` (UUID string)."""
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    claims = {"sub": user_id, "type": "access", "iat": now, "exp": now + lifetime}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
