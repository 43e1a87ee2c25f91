"""Auth API router: register, login, refresh, me."""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from jose import JWTError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.auth.jwt import REFRESH, create_token_pair, decode_token
from app.auth.passwords import hash_password, verify_password
from app.errors import AppError
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from app.schemas.common import ApiResponse, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

_WWW_AUTHENTICATE = {"WWW-Authenticate": "Bearer"}


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**create_token_pair(str(user.id))),
    )


# ---------------------------------------------------------------------------
# POST /register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> ApiResponse[AuthResponse]:
    """Register a new user with email and password. New accounts start on starter."""
    if await _user_by_email(db, body.email) is not None:
        raise AppError(status.HTTP_409_CONFLICT, "Email already registered")

    user = User(
        email=body.email.strip().lower(),
        hashed_password=hash_password(body.password),
        name=body.name,
        company_name=body.company_name,
        plan="starter",
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("Registered user %s", user.id)
    return ok(_auth_response(user))


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=ApiResponse[AuthResponse])
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> ApiResponse[AuthResponse]:
    """Authenticate with email and password."""
    user = await _user_by_email(db, body.email)

    if user is None or not verify_password(body.password, user.hashed_password):
        raise AppError(status.HTTP_401_UNAUTHORIZED, "Invalid email or password", headers=_WWW_AUTHENTICATE)

    if not user.is_active:
        raise AppError(status.HTTP_403_FORBIDDEN, "Account is inactive")

    return ok(_auth_response(user))


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> ApiResponse[TokenResponse]:
    """Exchange a valid refresh token for a new token pair."""
    try:
        payload = decode_token(body.refresh_token, expected_type=REFRESH)
        user_id = uuid.UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise AppError(
            status.HTTP_401_UNAUTHORIZED, "Invalid or expired refresh token", headers=_WWW_AUTHENTICATE
        ) from None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AppError(status.HTTP_401_UNAUTHORIZED, "User not found or inactive", headers=_WWW_AUTHENTICATE)

    return ok(TokenResponse(**create_token_pair(str(user.id))))


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(current_user: User = Depends(get_current_user)) -> ApiResponse[UserResponse]:
    """Return the currently authenticated user's profile."""
    return ok(UserResponse.model_validate(current_user))
