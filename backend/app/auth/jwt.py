"""JWT access/refresh tokens for API authentication."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _encode(subject: str, token_type: str, lifetime: timedelta, extra: dict | None = None) -> str:
    now = datetime.now(timezone.utc)
    claims = dict(extra or {})
    claims.update({"sub": subject, "type": token_type, "iat": now, "exp": now + lifetime})
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Short-lived token sent as ``Authorization: Bearer``."""
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(user_id, ACCESS, lifetime)


def create_refresh_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Long-lived token that can only be exchanged at ``/auth/refresh``."""
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(user_id, REFRESH, lifetime)


def decode_token(token: str, expected_type: str | None = None) -> dict:
    """Decode and verify a JWT.

    Raises:
        jose.JWTError: If the token is invalid, expired, malformed, or its
            ``type`` claim differs from ``expected_type``.
    """
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    if expected_type is not None and payload.get("type") != expected_type:
        raise JWTError(f"Expected a {expected_type} token")
    return payload


def create_token_pair(user_id: str) -> dict[str, str | int]:
    """Access + refresh tokens for a freshly authenticated user."""
    return {
        "access_token": create_access_token(user_id),
        "refresh_token": create_refresh_token(user_id),
        "token_type": "bearer",
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
    }
