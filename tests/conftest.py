# tests/conftest.py
from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

import storefront.api.dependencies as _deps
from storefront.api.dependencies import get_content_generator
from storefront.core.config import Settings, get_settings
from storefront.domain.ports import ContentGeneratorPort
from storefront.main import app, limiter


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api_keys={"test-key-alice": "tenant_alice", "test-key-bob": "tenant_bob"},
        gemini_api_key="test-gemini-key",
        image_base_url="/static/products",
    )


@pytest.fixture
def generator() -> AsyncMock:
    return AsyncMock(spec=ContentGeneratorPort)


@pytest.fixture
def client(test_settings: Settings, generator: AsyncMock) -> Generator[TestClient, None, None]:
    # Each test starts with a fresh session registry and an unused rate limit.
    _deps._session_registry = None
    limiter.reset()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_content_generator] = lambda: generator
    try:
        with patch("storefront.core.config.get_settings", return_value=test_settings), TestClient(
            app
        ) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        _deps._session_registry = None


@pytest.fixture
def alice_headers() -> dict:
    return {"X-API-Key": "test-key-alice"}


@pytest.fixture
def bob_headers() -> dict:
    return {"X-API-Key": "test-key-bob"}
