"""
MongoDB client for the Billboard backend.

Wraps the async Motor driver with:
- connection pooling sized from Settings
- retry with exponential backoff on startup
- one accessor per collection (users, ads, campaigns, payments, referral codes,
  referral rewards and user credits)
- index creation for the lookups the engines perform

The client is a process-wide singleton created by ``init_db()`` during FastAPI
startup. Services fetch it with ``get_db_client()``, which raises RuntimeError
when the database has not been initialised; routers translate that to 503.
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from billboard.config import Settings, get_settings


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
ADS_COLLECTION = "ads"
CAMPAIGNS_COLLECTION = "campaigns"
PAYMENTS_COLLECTION = "payments"
REFERRAL_CODES_COLLECTION = "referral_codes"
REFERRAL_REWARDS_COLLECTION = "referral_rewards"
USER_CREDITS_COLLECTION = "user_credits"

MAX_CONNECT_RETRIES = 3


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Example usage:
        ```python
        db_client = DatabaseClient(Settings())
        await db_client.connect()

        codes = db_client.get_referral_codes_collection()
        await codes.find_one({"code": "AB12CD34"})

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    async def connect(self) -> bool:
        """
        Connect to MongoDB, retrying with exponential backoff (1s, 2s).

        Returns:
            bool: True once a ping succeeds, False after all attempts fail.
        """
        retry_delay = 1.0

        for attempt in range(1, MAX_CONNECT_RETRIES + 1):
            try:
                logger.info(
                    "Connecting to MongoDB database %s (attempt %d/%d)",
                    self._db_name,
                    attempt,
                    MAX_CONNECT_RETRIES,
                )
                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                )
                self._database = self._client[self._db_name]
                await self._client.admin.command("ping")

                logger.info(
                    "Connected to MongoDB database %s with pool size %d-%d",
                    self._db_name,
                    self._min_pool_size,
                    self._max_pool_size,
                )
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    "MongoDB connection failed (attempt %d/%d)", attempt, MAX_CONNECT_RETRIES
                )
                if attempt < MAX_CONNECT_RETRIES:
                    logger.warning("Retrying in %.0f seconds...", retry_delay)
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        logger.error("Failed to connect to MongoDB after %d attempts", MAX_CONNECT_RETRIES)
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed for database: %s", self._db_name)

    async def ping(self) -> bool:
        """Health check using the admin ping command."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except (ConnectionFailure, ServerSelectionTimeoutError):
            logger.exception("MongoDB ping failed")
            return False

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    # =========================================================================
    # Collection accessors
    # =========================================================================

    def get_users_collection(self) -> AsyncIOMotorCollection:
        """Registered accounts: email, username, password hash, profile fields."""
        return self.get_database()[USERS_COLLECTION]

    def get_ads_collection(self) -> AsyncIOMotorCollection:
        """Ads submitted by users, with slot, format and moderation status."""
        return self.get_database()[ADS_COLLECTION]

    def get_campaigns_collection(self) -> AsyncIOMotorCollection:
        """Scheduled ad runs, linked to an ad and a payment."""
        return self.get_database()[CAMPAIGNS_COLLECTION]

    def get_payments_collection(self) -> AsyncIOMotorCollection:
        """Local record of Stripe checkout sessions and payment intents."""
        return self.get_database()[PAYMENTS_COLLECTION]

    def get_referral_codes_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[REFERRAL_CODES_COLLECTION]

    def get_referral_rewards_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[REFERRAL_REWARDS_COLLECTION]

    def get_user_credits_collection(self) -> AsyncIOMotorCollection:
        """Credit ledger written when referral rewards are paid out."""
        return self.get_database()[USER_CREDITS_COLLECTION]

    async def create_indexes(self) -> None:
        """Create the indexes used by lookups in the engines and routers."""
        database = self.get_database()

        users = database[USERS_COLLECTION]
        await users.create_index("email", unique=True)
        await users.create_index("username", unique=True)

        ads = database[ADS_COLLECTION]
        await ads.create_index([("user_id", 1), ("created_at", -1)])
        await ads.create_index("status")

        campaigns = database[CAMPAIGNS_COLLECTION]
        await campaigns.create_index([("user_id", 1), ("created_at", -1)])
        await campaigns.create_index("payment_id", sparse=True)

        payments = database[PAYMENTS_COLLECTION]
        await payments.create_index("stripe_session_id", sparse=True)
        await payments.create_index("stripe_payment_intent_id", sparse=True)
        await payments.create_index("user_id")

        codes = database[REFERRAL_CODES_COLLECTION]
        await codes.create_index("code", unique=True)
        await codes.create_index("user_id")

        rewards = database[REFERRAL_REWARDS_COLLECTION]
        await rewards.create_index("referrer_id")
        await rewards.create_index("status")

        credits = database[USER_CREDITS_COLLECTION]
        await credits.create_index("user_id")

        logger.info("MongoDB indexes created")


class _DatabaseClientContainer:
    """Holds the process-wide client without module-level globals."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings | None = None) -> DatabaseClient:
    """
    Initialise the global database client and create indexes.

    Raises:
        RuntimeError: If MongoDB cannot be reached after all retries.
    """
    if _container.client is not None:
        return _container.client

    client = DatabaseClient(settings or get_settings())
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )

    await client.create_indexes()
    _container.client = client
    return client


async def close_db() -> None:
    """Close the global database client if one exists."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the global database client.

    Raises:
        RuntimeError: If init_db() has not run.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client
