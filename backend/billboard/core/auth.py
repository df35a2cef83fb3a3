"""
Billboard Authentication Module

Local HS256 JWT authentication for the Billboard API:
- token creation on register/login (24-hour expiry by default)
- ``get_current_user`` FastAPI dependency for protected routes
- Redis-backed user cache (5-minute TTL) and login sessions; a token is
  rejected once its session is revoked
- email/password verification against bcrypt hashes in MongoDB

Usage:
    ```python
    from fastapi import Depends
    from billboard.core.auth import get_current_user

    @router.get("/mine")
    async def list_my_ads(user: dict = Depends(get_current_user)):
        return {"user_id": user["_id"]}
    ```
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from billboard.config import Settings, get_settings
from billboard.core.database import get_db_client
from billboard.core.redis_client import CacheKeys, CacheTTL, get_redis_client
from billboard.utils.security import verify_password


logger = logging.getLogger(__name__)

# =============================================================================
# Security Scheme
# =============================================================================

security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token returned by /api/v1/auth/login or /register.",
    auto_error=True,
)

# Fields never returned to clients or written to the cache
PRIVATE_USER_FIELDS = ("hashed_password",)


# =============================================================================
# Token Creation and Validation
# =============================================================================


def create_access_token(user_id: str, email: str, settings: Settings | None = None) -> str:
    """
    Create an HS256 access token.

    Claims: ``sub`` (user id), ``email``, ``exp``, ``iat``, ``type="local"``.
    """
    settings = settings or get_settings()
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)
    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "iat": now,
        "type": "local",
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.info("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify signature and expiry of a token.

    Raises:
        JWTError: If the token is invalid or expired.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Access token validation failed: %s", e)
        raise


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """Copy of a user document with a string ``_id`` and no password hash."""
    cleaned = {k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS}
    cleaned["_id"] = str(cleaned["_id"])
    return cleaned


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def authenticate_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Validate the Bearer token and return its claims.

    A signed token is only accepted while its login session is live, so
    logging out (or logging in again) ends it before ``exp``.

    Raises:
        HTTPException: 401 on a bad signature, expiry, or revoked session.
    """
    try:
        claims = decode_access_token(credentials.credentials, settings)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user_id = claims.get("sub")
    if user_id and not await verify_session(user_id, credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


async def get_current_user(
    token_data: dict[str, Any] = Depends(authenticate_token),
) -> dict[str, Any]:
    """
    Resolve the authenticated user document.

    Lookup order: Redis cache (``user:{id}``), then MongoDB by ObjectId. A
    fresh database hit is cached for five minutes.

    Raises:
        HTTPException: 401 when the token has no subject, 404 when the user
            no longer exists, 503 when the database is unavailable.
    """
    user_id = token_data.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier",
        )

    redis_client = get_redis_client()
    cache_key = f"{CacheKeys.USER}:{user_id}"
    if redis_client:
        cached_user = await redis_client.get_json(cache_key)
        if cached_user:
            return cached_user

    try:
        users = get_db_client().get_users_collection()
        user = await users.find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        user = None
    except RuntimeError:
        logger.exception("Database error")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from None

    if user is None:
        logger.warning("User not found in database: %s", user_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user = public_user(user)
    if redis_client:
        await redis_client.set_json(cache_key, user, ttl=CacheTTL.USER)
    return user


# =============================================================================
# Session Management
# =============================================================================


async def create_user_session(user_id: str, token: str) -> bool:
    """Record an active session in Redis with the token lifetime as TTL."""
    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Redis not available for session creation")
        return False

    ttl = get_settings().jwt_expiration_hours * 3600
    session_data = {
        "token": token,
        "created_at": datetime.now(UTC).isoformat(),
        "user_id": user_id,
    }
    return await redis_client.set_json(f"{CacheKeys.SESSION}:{user_id}", session_data, ttl=ttl)


async def revoke_user_session(user_id: str) -> bool:
    """Delete the user's session and cached profile. False if Redis is absent."""
    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Redis not available for session revocation")
        return False

    await redis_client.delete(f"{CacheKeys.SESSION}:{user_id}")
    await redis_client.delete(f"{CacheKeys.USER}:{user_id}")
    logger.info("Session revoked for user: %s", user_id)
    return True


async def verify_session(user_id: str, token: str) -> bool:
    """
    Check that ``token`` is the one recorded for the user's live session.

    Without Redis there is no session store and the token's signature and
    expiry are the only checks, so this returns True.
    """
    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Redis not available for session verification")
        return True

    session = await redis_client.get_json(f"{CacheKeys.SESSION}:{user_id}")
    if not session or session.get("token") != token:
        logger.info("No active session for user: %s", user_id)
        return False
    return True


# =============================================================================
# Credential Check
# =============================================================================


async def authenticate_user(email: str, password: str) -> dict[str, Any] | None:
    """
    Check an email/password pair against the users collection.

    Returns:
        The public user document, or None when the email is unknown or the
        password does not match.

    Raises:
        RuntimeError: If the database is not initialised.
    """
    users = get_db_client().get_users_collection()
    user = await users.find_one({"email": email.lower()})
    if user is None:
        logger.warning("Authentication failed: unknown email %s", email)
        return None

    if not verify_password(password, user.get("hashed_password", "")):
        logger.warning("Authentication failed: invalid password for %s", email)
        return None

    now = datetime.now(UTC)
    await users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return public_user(user)


__all__ = [
    "authenticate_token",
    "authenticate_user",
    "create_access_token",
    "create_user_session",
    "decode_access_token",
    "get_current_user",
    "public_user",
    "revoke_user_session",
    "security",
    "verify_session",
]
