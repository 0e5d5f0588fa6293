import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

import storefront.api.dependencies as _deps
from storefront.api.dependencies import get_session_registry, shutdown_sessions
from storefront.core.config import Settings
from storefront.domain.ports import ContentGeneratorPort
from storefront.services.affiliate import AffiliateLinkTransformer


@pytest_asyncio.fixture  # type: ignore[misc]
async def fresh_registry() -> AsyncGenerator[None, None]:
    await shutdown_sessions()
    yield
    await shutdown_sessions()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_concurrent_first_requests_share_one_registry(
    fresh_registry: None, tmp_path: Path
) -> None:
    settings = Settings(session_database_url=f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    generator = AsyncMock(spec=ContentGeneratorPort)
    links = AffiliateLinkTransformer(rules=[])

    one, two, three = await asyncio.gather(
        get_session_registry(settings, generator, links),
        get_session_registry(settings, generator, links),
        get_session_registry(settings, generator, links),
    )

    assert one is two is three
    session = await one.create("tenant_alice")
    assert await two.get("tenant_alice", session.id) is session
    assert _deps._storage_database is not None


@pytest.mark.asyncio  # type: ignore[misc]
async def test_registry_uses_configured_idle_limit(fresh_registry: None) -> None:
    settings = Settings(session_idle_seconds=1)
    registry = await get_session_registry(
        settings, AsyncMock(spec=ContentGeneratorPort), AffiliateLinkTransformer(rules=[])
    )

    assert registry._idle_seconds == 1
    assert _deps._storage_database is None
