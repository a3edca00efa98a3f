"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_token
from app.database import get_db
from app.models.user import User

# Strict bearer: rejects requests without an Authorization header
_bearer_scheme = HTTPBearer()


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the Bearer access token to an active user.

    Raises:
        HTTPException 401: If the token is invalid, expired, wrong type, or the
            user is unknown or inactive.
    """
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _credentials_exception() from None

    # Refresh tokens are not accepted for API calls
    if payload.get("type") != "access":
        raise _credentials_exception("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _credentials_exception() from None

    user = await db.get(User, user_id)
    if user is None:
        raise _credentials_exception()
    if not user.is_active:
        raise _credentials_exception("User account is inactive")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only admin users through.

    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
