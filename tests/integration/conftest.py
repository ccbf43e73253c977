"""Shared fixtures for webhook API integration tests"""
import pytest
import httpx
from typing import AsyncGenerator, Dict
from uuid import uuid4

from drasbot import config
from drasbot.api.server import create_api_application


@pytest.fixture
def test_api_key() -> str:
    """Test API key for authentication"""
    return "test_key_123"


@pytest.fixture
def auth_headers(test_api_key: str) -> Dict[str, str]:
    """Valid authentication headers"""
    return {"Authorization": f"Bearer {test_api_key}"}


@pytest.fixture
def configured_keys(monkeypatch, test_api_key: str) -> list[str]:
    keys = [test_api_key, "second_key_456"]
    monkeypatch.setattr(config, "WEBHOOK_API_KEYS", keys)
    return keys


@pytest.fixture
def app(container):
    """Webhook app wired to the in-memory container and fake bridge"""
    return create_api_application(container=container, storage_backend="memory")


@pytest.fixture
async def api_client(app, configured_keys) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client running the app in-process, lifespan included"""
    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://test"
        ) as client:
            yield client


@pytest.fixture
def unique_sender() -> str:
    """Fresh phone-number identity for test isolation"""
    return f"346{uuid4().int % 10**8:08d}"

