"""
Redis cache client for the Billboard backend.

Redis is an optional accelerator: it holds login sessions, cached user profiles
and the generated daily-deals feed. Every operation degrades to a logged miss
when Redis is down, so callers never need their own error handling.

``get_redis_client()`` returns None (rather than raising) when Redis was not
initialised at startup.
"""

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from billboard.config import Settings, get_settings


logger = logging.getLogger(__name__)


class RedisClient:
    """
    Thin async wrapper over redis-py with JSON helpers.

    Example:
        ```python
        client = RedisClient(settings)
        await client.connect()
        await client.set_json("deals:daily", deals, ttl=3600)
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: redis.Redis | None = None
        self._connected: bool = False

    @staticmethod
    def _mask_url(url: str) -> str:
        """Hide credentials before logging a Redis URL."""
        if "@" in url:
            return f"redis://***@{url.split('@')[-1]}"
        return url

    async def connect(self) -> bool:
        """
        Connect with up to three attempts (immediate, +1s, +2s).

        Returns:
            bool: True if a PING succeeded.
        """
        max_retries = 3
        base_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Connecting to Redis at %s (attempt %d/%d)",
                    self._mask_url(self.settings.redis_url),
                    attempt,
                    max_retries,
                )
                self._client = redis.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()
                self._connected = True
                logger.info("Connected to Redis")
                return True

            except RedisConnectionError as e:
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s", attempt, max_retries, e
                )
                if attempt < max_retries:
                    await asyncio.sleep(base_delay * (2 ** (attempt - 1)))
            except RedisError:
                logger.exception("Redis error during connection")
                if attempt < max_retries:
                    await asyncio.sleep(base_delay * (2 ** (attempt - 1)))

        self._connected = False
        return False

    async def close(self) -> None:
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except RedisError:
                logger.exception("Error closing Redis connection")
            finally:
                self._client = None
                self._connected = False

    async def ping(self) -> bool:
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            self._connected = False
            return False

    # =========================================================================
    # Core Operations
    # =========================================================================

    async def get(self, key: str) -> str | None:
        if not self._client:
            return None
        try:
            return await self._client.get(key)
        except RedisError:
            logger.exception("Failed to get key '%s'", key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``str(value)``; a positive ``ttl`` sets an expiry in seconds."""
        if not self._client:
            return False
        try:
            str_value = value if isinstance(value, str) else str(value)
            if ttl is not None and ttl > 0:
                await self._client.setex(key, ttl, str_value)
            else:
                await self._client.set(key, str_value)
            return True
        except RedisError:
            logger.exception("Failed to set key '%s'", key)
            return False

    async def delete(self, key: str) -> bool:
        """Returns True only if a key was removed."""
        if not self._client:
            return False
        try:
            return bool(await self._client.delete(key))
        except RedisError:
            logger.exception("Failed to delete key '%s'", key)
            return False

    async def get_json(self, key: str) -> Any | None:
        """Fetch and decode a JSON value; undecodable payloads count as a miss."""
        value = await self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.exception("Failed to decode JSON for key '%s'", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            json_value = json.dumps(value, default=str)
        except (TypeError, ValueError):
            logger.exception("Failed to serialize JSON for key '%s'", key)
            return False
        return await self.set(key, json_value, ttl=ttl)


# =============================================================================
# Module-Level Lifecycle
# =============================================================================


class _RedisClientContainer:
    client: RedisClient | None = None


_container = _RedisClientContainer()


async def init_redis(settings: Settings | None = None) -> RedisClient:
    """
    Create and connect the global Redis client.

    Raises:
        RuntimeError: If Redis cannot be reached.
    """
    if _container.client is not None:
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        raise RuntimeError("Failed to connect to Redis after multiple attempts")

    _container.client = client
    return client


async def close_redis() -> None:
    if _container.client is not None:
        await _container.client.close()
        _container.client = None


def get_redis_client() -> RedisClient | None:
    """Return the global client, or None when Redis is not in use."""
    return _container.client


# =============================================================================
# Cache Keys and TTLs
# =============================================================================


class CacheKeys:
    """Key prefixes, joined to an identifier with a colon."""

    SESSION = "session"
    USER = "user"
    DAILY_DEALS = "deals:daily"


class CacheTTL:
    """TTL values in seconds."""

    USER = 300
