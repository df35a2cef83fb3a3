"""
Pytest Configuration and Test Fixtures for the Billboard Backend

Provides:
- Test Settings with Stripe, OpenAI and JWT values filled in
- Mocked Motor collections and a DatabaseClient exposing them
- Mocked Redis client with JSON helpers
- Mocked LLM client for the deals, surprises and ad copy services
- FastAPI TestClient with dependency overrides cleared after each test

External services (MongoDB, Redis, Stripe, OpenAI) are never contacted.
"""

import hashlib
import hmac
import time
from datetime import UTC, datetime
from typing import Any, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from billboard.config import Settings
from billboard.core.auth import create_access_token, get_current_user
from billboard.main import app
from billboard.services.llm_client import LLMClient


TEST_SECRET_KEY = "test-secret-key-for-jwt-signing-minimum-32-chars"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: isolated tests with all external services mocked")


# ==============================================================================
# Settings
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    return Settings(
        app_env="testing",
        debug=True,
        secret_key=TEST_SECRET_KEY,
        mongodb_uri="mongodb://localhost:27017/test_billboard",
        mongodb_db_name="test_billboard",
        redis_url="redis://localhost:6379/1",
        jwt_algorithm="HS256",
        jwt_expiration_hours=24,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test_123",
        openai_api_key="sk-test-openai",
        frontend_url="http://localhost:5173",
        referral_base_url="https://billboard.com",
    )


# ==============================================================================
# Stripe
# ==============================================================================


def stripe_signature(payload: bytes, secret: str) -> str:
    """``Stripe-Signature`` header value for ``payload``, signed now."""
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# ==============================================================================
# MongoDB
# ==============================================================================


def make_cursor(documents: list[dict[str, Any]]) -> MagicMock:
    """Motor-style cursor whose chain methods return itself."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


def make_collection() -> MagicMock:
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)
    collection.find = MagicMock(return_value=make_cursor([]))
    collection.aggregate = MagicMock(return_value=make_cursor([]))
    return collection


@pytest.fixture
def collections() -> dict[str, MagicMock]:
    names = [
        "users",
        "ads",
        "campaigns",
        "payments",
        "referral_codes",
        "referral_rewards",
        "user_credits",
    ]
    return {name: make_collection() for name in names}


@pytest.fixture
def mock_db(collections: dict[str, MagicMock]) -> MagicMock:
    """DatabaseClient stand-in whose getters return the shared collections."""
    db = MagicMock()
    for name, collection in collections.items():
        getattr(db, f"get_{name}_collection").return_value = collection
    return db


# ==============================================================================
# Redis
# ==============================================================================


@pytest.fixture
def mock_redis() -> AsyncMock:
    redis_client = AsyncMock()
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock(return_value=True)
    redis_client.delete = AsyncMock(return_value=True)
    redis_client.get_json = AsyncMock(return_value=None)
    redis_client.set_json = AsyncMock(return_value=True)
    return redis_client


# ==============================================================================
# LLM
# ==============================================================================


@pytest.fixture
def mock_llm() -> MagicMock:
    llm = MagicMock(spec=LLMClient)
    llm.complete_json = AsyncMock(return_value={})
    llm.complete_text = AsyncMock(return_value="")
    llm.generate_image = AsyncMock(return_value="https://images.example.com/ad.png")
    return llm


# ==============================================================================
# Users and Auth
# ==============================================================================


@pytest.fixture
def test_user() -> dict[str, Any]:
    """Public user document as returned by get_current_user."""
    return {
        "_id": "507f1f77bcf86cd799439011",
        "email": "advertiser@example.com",
        "username": "acme_ads",
        "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        "last_login": None,
    }


@pytest.fixture
def auth_headers(test_user: dict[str, Any], mock_settings: Settings) -> dict[str, str]:
    token = create_access_token(test_user["_id"], test_user["email"], mock_settings)
    return {"Authorization": f"Bearer {token}"}


# ==============================================================================
# FastAPI
# ==============================================================================


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    TestClient without lifespan events, so no database or Redis connection
    is attempted. Dependency overrides are reset afterwards.
    """
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def authed_client(client: TestClient, test_user: dict[str, Any]) -> TestClient:
    app.dependency_overrides[get_current_user] = lambda: test_user
    return client
