"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import ACCESS, decode_token
from app.database import get_db
from app.errors import AppError
from app.models.user import User

# auto_error=False so a missing token is reported as 401 rather than 403
_bearer_scheme = HTTPBearer(auto_error=False)

_WWW_AUTHENTICATE = {"WWW-Authenticate": "Bearer"}


def _unauthorized(error: str, message: str | None = None) -> AppError:
    return AppError(
        status.HTTP_401_UNAUTHORIZED,
        error,
        message=message,
        headers=_WWW_AUTHENTICATE,
    )


async def _user_from_token(db: AsyncSession, token: str) -> User | None:
    """Resolve an access token to an active user, or None if anything is off."""
    try:
        payload = decode_token(token, expected_type=ACCESS)
    except JWTError:
        return None

    sub: str | None = payload.get("sub")
    if sub is None:
        return None

    try:
        user_id = uuid.UUID(sub)
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the Bearer token, then return the authenticated user.

    Anonymous requests never fall through to a default identity.

    Raises:
        AppError 401: If no token is supplied, or it is invalid, expired, of the
            wrong type, or names an unknown or inactive user.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentication required", "Sign in to use this endpoint.")

    user = await _user_from_token(db, credentials.credentials)
    if user is None:
        raise _unauthorized("Invalid or expired token")
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    """Return the current user only if they have the admin role.

    Raises:
        AppError 403: If the user is not an admin.
    """
    if not user.is_admin:
        raise AppError(status.HTTP_403_FORBIDDEN, "Admin access required")
    return user

