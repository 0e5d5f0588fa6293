import asyncio

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from storefront.domain.models import GenerateOptions, GenerationResult, Region
from storefront.domain.ports import ContentGeneratorPort
from storefront.main import app
from storefront.repositories.memory_storage import InMemorySessionStorage
from storefront.services.affiliate import AffiliateLinkTransformer
from storefront.services.curation_service import CurationService
from storefront.services.response_cache import ResponseCache


def test_request_count_middleware() -> None:
    client = TestClient(app)

    def get_count(method: str, path: str, status_code: str) -> float:
        return (
            REGISTRY.get_sample_value(
                "http_requests_total", {"method": method, "path": path, "status_code": status_code}
            )
            or 0.0
        )

    initial = get_count("GET", "/healthz", "200")

    response = client.get("/healthz")
    assert response.status_code == 200

    final = get_count("GET", "/healthz", "200")
    assert final == initial + 1


def test_metrics_endpoint_unauthenticated() -> None:
    client = TestClient(app)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


@pytest.mark.asyncio  # type: ignore[misc]
async def test_cache_metrics() -> None:
    cache = ResponseCache(InMemorySessionStorage(capacity_bytes=10_000), ttl_seconds=60)

    def get_hits() -> float:
        return REGISTRY.get_sample_value("cache_hits_total") or 0.0

    def get_misses() -> float:
        return REGISTRY.get_sample_value("cache_misses_total") or 0.0

    initial_hits = get_hits()
    initial_misses = get_misses()

    # Miss
    await cache.get("nonexistent")
    assert get_misses() == initial_misses + 1
    assert get_hits() == initial_hits

    # Hit
    await cache.set("k", ["v"])
    await cache.get("k")

    assert get_hits() == initial_hits + 1
    assert get_misses() == initial_misses + 1


@pytest.mark.asyncio  # type: ignore[misc]
async def test_rejected_cache_value_counts_as_miss() -> None:
    storage = InMemorySessionStorage(capacity_bytes=10_000)
    cache = ResponseCache(storage, ttl_seconds=60)
    await cache.set("k", [{"name": "only"}])

    def reject(value: object) -> object:
        raise ValueError("outdated shape")

    hits_before = REGISTRY.get_sample_value("cache_hits_total") or 0.0
    misses_before = REGISTRY.get_sample_value("cache_misses_total") or 0.0

    assert await cache.get("k", validate=reject) is None

    assert (REGISTRY.get_sample_value("cache_hits_total") or 0.0) == hits_before
    assert (REGISTRY.get_sample_value("cache_misses_total") or 0.0) == misses_before + 1
    assert await storage.get("k") is None


@pytest.mark.asyncio  # type: ignore[misc]
async def test_stale_and_remote_call_metrics() -> None:
    release = asyncio.Event()

    class SlowGenerator(ContentGeneratorPort):
        async def generate(self, prompt: str, options: GenerateOptions) -> GenerationResult:
            await release.wait()
            return GenerationResult(text="[]")

    service = CurationService(
        generator=SlowGenerator(),
        cache=ResponseCache(InMemorySessionStorage(capacity_bytes=10_000), ttl_seconds=60),
        link_transformer=AffiliateLinkTransformer(rules=[]),
        image_base_url="/img",
    )

    def sample(name: str, labels: dict) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    stale_before = sample("stale_results_discarded_total", {"family": "insights"})
    ok_before = sample("remote_content_requests_total", {"operation": "insights", "status": "ok"})

    first = asyncio.create_task(service.get_insights(Region.US))
    await asyncio.sleep(0)
    second = asyncio.create_task(service.get_insights(Region.JP))
    await asyncio.sleep(0)
    release.set()
    await asyncio.gather(first, second)

    assert sample("stale_results_discarded_total", {"family": "insights"}) == stale_before + 1
    assert (
        sample("remote_content_requests_total", {"operation": "insights", "status": "ok"})
        == ok_before + 2
    )
