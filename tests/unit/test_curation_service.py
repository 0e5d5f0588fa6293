import asyncio
import json
import time
from unittest.mock import AsyncMock

import pytest

from storefront.domain.models import (
    GenerateOptions,
    GenerationResult,
    GroundingLink,
    OperationFamily,
    Region,
)
from storefront.domain.ports import ContentGeneratorPort, RemoteContentError
from storefront.repositories.memory_storage import InMemorySessionStorage
from storefront.services.affiliate import AffiliateLinkTransformer
from storefront.services.curation_service import CurationService
from storefront.services.response_cache import ResponseCache


def _products_text(*names: str) -> str:
    return json.dumps(
        [
            {
                "id": f"id-{name}",
                "name": name,
                "brand": "Stander",
                "description": "desc",
                "price": "49.00",
                "currency": "USD",
                "category": "Mobility & Access",
                "reasoning": "fits",
            }
            for name in names
        ]
    )


class ControlledGenerator(ContentGeneratorPort):
    """Each call blocks until the test resolves it, in any order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, asyncio.Future[GenerationResult]]] = []

    async def generate(self, prompt: str, options: GenerateOptions) -> GenerationResult:
        future: asyncio.Future[GenerationResult] = asyncio.get_running_loop().create_future()
        self.calls.append((prompt, future))
        return await future

    def resolve(self, index: int, text: str) -> None:
        self.calls[index][1].set_result(GenerationResult(text=text))

    async def wait_for_calls(self, count: int) -> None:
        for _ in range(100):
            if len(self.calls) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} remote calls, saw {len(self.calls)}")


def _service(generator: ContentGeneratorPort) -> CurationService:
    cache = ResponseCache(InMemorySessionStorage(capacity_bytes=1_000_000), ttl_seconds=3600)
    return CurationService(
        generator=generator,
        cache=cache,
        link_transformer=AffiliateLinkTransformer.from_affiliate_ids(
            {"amazon": "silversage-20", "walmart": "1234567"}
        ),
        image_base_url="/static/products",
    )


@pytest.fixture
def generator() -> AsyncMock:
    return AsyncMock(spec=ContentGeneratorPort)


@pytest.mark.asyncio  # type: ignore[misc]
async def test_second_identical_search_is_served_from_cache(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text=_products_text("Walker"))
    service = _service(generator)

    first = await service.search_products("Walker", Region.US, "Mobility & Access")
    second = await service.search_products("  walker ", Region.US, "mobility & access")

    assert first == second
    assert [p.name for p in first] == ["Walker"]
    generator.generate.assert_called_once()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_different_region_is_a_different_query(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text=_products_text("Walker"))
    service = _service(generator)

    await service.search_products("Walker", Region.US)
    await service.search_products("Walker", Region.JP)

    assert generator.generate.call_count == 2


@pytest.mark.asyncio  # type: ignore[misc]
async def test_product_search_uses_strict_schema(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text="[]")
    service = _service(generator)

    await service.search_products("black friday gifts", Region.EU)

    prompt, options = generator.generate.call_args.args
    assert "Europe" in prompt
    assert "Gift-ability" in prompt
    assert options.response_schema is not None
    assert options.use_web_grounding is False
    assert options.temperature == 0.3


@pytest.mark.asyncio  # type: ignore[misc]
async def test_empty_query_falls_back_to_category_default(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text="[]")
    service = _service(generator)

    await service.search_products("", Region.US, "Home & Living")
    await service.search_products(None, Region.US, "Home & Living")

    prompt, _ = generator.generate.call_args.args
    assert '"best Home & Living products"' in prompt
    generator.generate.assert_called_once()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_zero_results_are_cached(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text="[]")
    service = _service(generator)

    assert await service.get_insights(Region.KR) == []
    assert await service.get_insights(Region.KR) == []
    generator.generate.assert_called_once()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_remote_failure_returns_empty_list_and_is_not_cached(generator: AsyncMock) -> None:
    generator.generate.side_effect = [
        RemoteContentError("generate_content", "503 Service Unavailable"),
        GenerationResult(text=_products_text("Walker")),
    ]
    service = _service(generator)

    assert await service.search_products("Walker", Region.US) == []
    state = service.view_state()[OperationFamily.PRODUCT_SEARCH]
    assert state.loading is False
    assert state.items == []

    retried = await service.search_products("Walker", Region.US)
    assert [p.name for p in retried] == ["Walker"]
    assert generator.generate.call_count == 2


@pytest.mark.asyncio  # type: ignore[misc]
async def test_malformed_response_returns_empty_list(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text="Sorry, I cannot help with that.")
    service = _service(generator)

    assert await service.get_insights(Region.AU) == []
    assert await service.get_insights(Region.AU) == []
    assert generator.generate.call_count == 2


@pytest.mark.asyncio  # type: ignore[misc]
async def test_buying_options_are_monetized_ranked_and_truncated(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(
        text="Here are some stores.",
        grounding_links=[
            GroundingLink(url="https://www.bestbuy.com/site/1", title="Best Buy"),
            GroundingLink(url="https://www.amazon.com/dp/B01", title="Amazon"),
            GroundingLink(url="https://www.costco.com/p/2", title="Costco"),
            GroundingLink(url="https://www.walmart.com/ip/3", title="Walmart"),
            GroundingLink(url="https://www.target.com/p/4", title="Target"),
            GroundingLink(url="not-a-link", title="Broken"),
        ],
    )
    service = _service(generator)

    options = await service.find_buying_options("Bose Hearphones", Region.US)

    assert [o.title for o in options] == ["Amazon", "Walmart", "Best Buy", "Costco"]
    assert options[0].url == "https://www.amazon.com/dp/B01?tag=silversage-20"
    assert options[0].source == "amazon.com"
    assert options[1].url == "https://www.walmart.com/ip/3?sourceid=1234567"
    _, request_options = generator.generate.call_args.args
    assert request_options.use_web_grounding is True


@pytest.mark.asyncio  # type: ignore[misc]
async def test_cached_buying_options_round_trip(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(
        grounding_links=[GroundingLink(url="https://amazon.com/dp/1", title="Amazon")]
    )
    service = _service(generator)

    first = await service.find_buying_options("Walker", Region.US)
    second = await service.find_buying_options("Walker", Region.US)

    assert first == second
    generator.generate.assert_called_once()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_untitled_grounding_links_are_skipped(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(
        grounding_links=[
            GroundingLink(url="https://www.amazon.com/dp/X", title=""),
            GroundingLink(url="https://www.walmart.com/ip/5", title="   "),
            GroundingLink(url="https://www.cvs.com/shop/6", title="CVS"),
        ]
    )
    service = _service(generator)

    options = await service.find_buying_options("walker", Region.US)

    assert [o.title for o in options] == ["CVS"]
    assert service.view_state()[OperationFamily.BUYING_OPTIONS].loading is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_cached_value_with_outdated_shape_is_refetched(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text=_products_text("Walker"))
    storage = InMemorySessionStorage(capacity_bytes=1_000_000)
    service = CurationService(
        generator=generator,
        cache=ResponseCache(storage, ttl_seconds=3600),
        link_transformer=AffiliateLinkTransformer(rules=[]),
        image_base_url="/static/products",
    )
    await service.search_products("walker", Region.US)
    (key,) = await storage.keys()
    await storage.set(key, json.dumps({"timestamp": time.time(), "data": [{"name": "only"}]}))

    products = await service.search_products("walker", Region.US)

    assert [p.name for p in products] == ["Walker"]
    assert generator.generate.call_count == 2


@pytest.mark.asyncio  # type: ignore[misc]
async def test_local_resources_with_topic(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(
        text='```json\n[{"name": "Alzheimer Society", "description": "Helpline", '
        '"contactInfo": "https://alz.example", "type": "Non-Profit"}]\n```'
    )
    service = _service(generator)

    resources = await service.find_local_resources(Region.EU, "dementia")

    assert [r.name for r in resources] == ["Alzheimer Society"]
    prompt, options = generator.generate.call_args.args
    assert "dementia" in prompt
    assert options.use_web_grounding is True
    assert service.view_state()[OperationFamily.LOCAL_RESOURCES].items == resources


@pytest.mark.asyncio  # type: ignore[misc]
async def test_only_latest_request_reaches_view_state() -> None:
    generator = ControlledGenerator()
    service = _service(generator)

    first = asyncio.create_task(service.search_products("first", Region.US))
    await generator.wait_for_calls(1)
    second = asyncio.create_task(service.search_products("second", Region.US))
    await generator.wait_for_calls(2)
    third = asyncio.create_task(service.search_products("third", Region.US))
    await generator.wait_for_calls(3)

    # 2 resolves before 1, both after 3 was issued
    generator.resolve(1, _products_text("Second"))
    assert [p.name for p in await second] == ["Second"]
    generator.resolve(0, _products_text("First"))
    assert [p.name for p in await first] == ["First"]

    state = service.view_state()[OperationFamily.PRODUCT_SEARCH]
    assert state.items == []
    assert state.loading is True
    assert state.request_id == 3

    generator.resolve(2, _products_text("Third"))
    await third

    state = service.view_state()[OperationFamily.PRODUCT_SEARCH]
    assert [p.name for p in state.items] == ["Third"]
    assert state.loading is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_superseded_results_are_still_cached() -> None:
    generator = ControlledGenerator()
    service = _service(generator)

    stale = asyncio.create_task(service.search_products("rollator", Region.US))
    await generator.wait_for_calls(1)
    latest = asyncio.create_task(service.search_products("lift chair", Region.US))
    await generator.wait_for_calls(2)

    generator.resolve(0, _products_text("Rollator"))
    await stale
    generator.resolve(1, _products_text("Lift Chair"))
    await latest

    # Served from cache, no third remote call
    again = await service.search_products("rollator", Region.US)
    assert [p.name for p in again] == ["Rollator"]
    assert len(generator.calls) == 2
    state = service.view_state()[OperationFamily.PRODUCT_SEARCH]
    assert [p.name for p in state.items] == ["Rollator"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_families_do_not_supersede_each_other() -> None:
    generator = ControlledGenerator()
    service = _service(generator)

    search = asyncio.create_task(service.search_products("walker", Region.US))
    await generator.wait_for_calls(1)
    insights = asyncio.create_task(service.get_insights(Region.US))
    await generator.wait_for_calls(2)

    generator.resolve(0, _products_text("Walker"))
    generator.resolve(1, "[]")
    await asyncio.gather(search, insights)

    state = service.view_state()
    assert [p.name for p in state[OperationFamily.PRODUCT_SEARCH].items] == ["Walker"]
    assert state[OperationFamily.PRODUCT_SEARCH].loading is False
    assert state[OperationFamily.INSIGHTS].loading is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_independent_services_have_independent_counters(generator: AsyncMock) -> None:
    generator.generate.return_value = GenerationResult(text="[]")
    one = _service(generator)
    two = _service(generator)

    await one.get_insights(Region.US)
    await one.get_insights(Region.JP)
    await two.get_insights(Region.US)

    assert one.view_state()[OperationFamily.INSIGHTS].request_id == 2
    assert two.view_state()[OperationFamily.INSIGHTS].request_id == 1
