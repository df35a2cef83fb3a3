"""
Billboard Authentication API Router

Endpoints:
- POST /register: Create an account and return an access token
- POST /login: Authenticate with email/password (OAuth2 password form)
- POST /logout: Revoke the Redis session
- GET /me: Current user profile

Tokens are local HS256 JWTs (24-hour expiry by default). Responses are plain
OAuth2-style bodies rather than the ``{"success": ...}`` envelope.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field, ValidationError
from pymongo.errors import DuplicateKeyError

from billboard.config import Settings, get_settings
from billboard.core.auth import (
    authenticate_user,
    create_access_token,
    create_user_session,
    get_current_user,
    public_user,
    revoke_user_session,
)
from billboard.core.database import get_db_client
from billboard.models.common import serialize_document
from billboard.models.user import User
from billboard.utils.security import MIN_PASSWORD_LENGTH, hash_password


logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


# =============================================================================
# Request/Response Models
# =============================================================================


class RegisterRequest(BaseModel):
    email: EmailStr = Field(..., examples=["advertiser@example.com"])
    username: str = Field(..., min_length=3, max_length=50, examples=["acme_ads"])
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class TokenResponse(BaseModel):
    """
    Access token plus the public user profile.

    Attributes:
        access_token: JWT for the Authorization header
        token_type: Always "bearer"
        expires_in: Token lifetime in seconds
        user: User document without the password hash
    """

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict[str, Any]


class LogoutResponse(BaseModel):
    message: str
    logged_out_at: str


# =============================================================================
# Helpers
# =============================================================================


async def _issue_token(user: dict[str, Any], settings: Settings) -> TokenResponse:
    user_id = str(user["_id"])
    access_token = create_access_token(user_id=user_id, email=user["email"], settings=settings)

    if not await create_user_session(user_id, access_token):
        logger.warning("Failed to create session for user %s, continuing anyway", user_id)

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.jwt_expiration_hours * 3600,
        user=serialize_document(user),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """
    Create a user with a bcrypt-hashed password and sign them in.

    Raises:
        HTTPException: 400 for an invalid username or an email/username that
            is already registered, 503 when the database is unavailable.
    """
    try:
        user = User(
            email=request.email,
            username=request.username,
            hashed_password=hash_password(request.password),
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors()[0]["msg"],
        ) from e

    try:
        users = get_db_client().get_users_collection()
        document = user.model_dump(exclude={"id"})
        result = await users.insert_one(document)
    except DuplicateKeyError as e:
        logger.info("Registration rejected for existing account: %s", user.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or username already registered",
        ) from e
    except RuntimeError as e:
        logger.exception("Database error during registration")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e

    document["_id"] = result.inserted_id
    logger.info("Registered user %s", user.email)
    return await _issue_token(public_user(document), settings)


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """
    OAuth2 password grant. The form's ``username`` field carries the email.

    Raises:
        HTTPException: 401 for invalid credentials, 503 when the database is
            unavailable.
    """
    email = form_data.username
    logger.info("Login attempt for email: %s", email)

    try:
        user = await authenticate_user(email, form_data.password)
    except RuntimeError as e:
        logger.exception("Database error during login")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await _issue_token(user, settings)


@router.post("/logout", response_model=LogoutResponse)
async def logout(current_user: dict[str, Any] = Depends(get_current_user)) -> LogoutResponse:
    user_id = str(current_user["_id"])
    if not await revoke_user_session(user_id):
        logger.warning("No session store available while logging out user %s", user_id)
    return LogoutResponse(
        message="Successfully logged out",
        logged_out_at=datetime.now(UTC).isoformat(),
    )


@router.get("/me")
async def me(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return serialize_document(current_user)
