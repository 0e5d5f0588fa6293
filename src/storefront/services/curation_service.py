from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar
from urllib.parse import urlsplit

from pydantic import TypeAdapter

from storefront.core.metrics import (
    REMOTE_CALL_COUNT,
    REMOTE_CALL_DURATION,
    STALE_RESULTS_DISCARDED,
)
from storefront.domain.models import (
    BuyingOption,
    GenerateOptions,
    LocalResource,
    MarketInsight,
    OperationFamily,
    OperationState,
    Product,
    Region,
)
from storefront.domain.ports import ContentGeneratorPort, MalformedResponseError, RemoteContentError
from storefront.services import prompts
from storefront.services.affiliate import AffiliateLinkTransformer
from storefront.services.cache_keys import DEFAULT_NAMESPACE, DEFAULT_VERSION, build_key
from storefront.services.request_epoch import RequestEpoch
from storefront.services.response_cache import ResponseCache
from storefront.services.response_normalizer import (
    normalize_insights,
    normalize_local_resources,
    normalize_products,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PRODUCT_LIST = TypeAdapter(list[Product])
_BUYING_OPTION_LIST = TypeAdapter(list[BuyingOption])
_INSIGHT_LIST = TypeAdapter(list[MarketInsight])
_LOCAL_RESOURCE_LIST = TypeAdapter(list[LocalResource])


class CurationService:
    """
    Orchestriert alle Abfragen an das Remote-Modell für eine Session.

    Pro Operation: Cache prüfen -> Remote-Aufruf -> Normalisieren -> Cachen.
    Fehler werden nie nach außen gereicht, sondern als leere Liste geliefert.
    Jede Operationsfamilie besitzt einen eigenen Request-Zähler; nur die
    jeweils neueste Anfrage darf den View-State (Ergebnisse + Loading-Flag)
    schreiben.
    """

    def __init__(
        self,
        generator: ContentGeneratorPort,
        cache: ResponseCache,
        link_transformer: AffiliateLinkTransformer,
        image_base_url: str,
        cache_namespace: str = DEFAULT_NAMESPACE,
        cache_version: str = DEFAULT_VERSION,
    ) -> None:
        self._generator = generator
        self._cache = cache
        self._links = link_transformer
        self._image_base_url = image_base_url
        self._namespace = cache_namespace
        self._version = cache_version
        self._epochs = {family: RequestEpoch() for family in OperationFamily}
        self._state = {family: OperationState() for family in OperationFamily}

    # ------------------------------------------------------------------
    # Operationen
    # ------------------------------------------------------------------

    async def search_products(
        self, query: str | None, region: Region, category: str | None = None
    ) -> list[Product]:
        resolved = prompts.resolve_product_query(query, category)
        key = self._key("products", resolved, region.value, category)

        async def fetch() -> list[Product]:
            holiday = prompts.is_holiday_context(resolved, category)
            result = await self._generator.generate(
                prompts.product_search_prompt(resolved, region, category, holiday),
                GenerateOptions(
                    response_schema=prompts.product_schema(holiday),
                    temperature=prompts.PRODUCT_TEMPERATURE,
                ),
            )
            return normalize_products(result.text, self._image_base_url)

        return await self._run(OperationFamily.PRODUCT_SEARCH, key, fetch, _PRODUCT_LIST)

    async def find_buying_options(self, product_name: str, region: Region) -> list[BuyingOption]:
        key = self._key("buying-options", product_name, region.value)

        async def fetch() -> list[BuyingOption]:
            result = await self._generator.generate(
                prompts.buying_options_prompt(product_name, region),
                GenerateOptions(use_web_grounding=True),
            )
            options = []
            for link in result.grounding_links:
                source = _source_of(link.url)
                if source is None:
                    logger.warning("Skipping grounding link without host: %s", link.url)
                    continue
                if not link.title.strip():
                    logger.warning("Skipping untitled grounding link: %s", link.url)
                    continue
                options.append(
                    BuyingOption(title=link.title, url=self._links.rewrite(link.url), source=source)
                )
            return self._links.rank(options)

        return await self._run(OperationFamily.BUYING_OPTIONS, key, fetch, _BUYING_OPTION_LIST)

    async def get_insights(self, region: Region) -> list[MarketInsight]:
        key = self._key("insights", region.value)

        async def fetch() -> list[MarketInsight]:
            result = await self._generator.generate(
                prompts.insights_prompt(region),
                GenerateOptions(response_schema=prompts.INSIGHT_SCHEMA),
            )
            return normalize_insights(result.text)

        return await self._run(OperationFamily.INSIGHTS, key, fetch, _INSIGHT_LIST)

    async def find_local_resources(
        self, region: Region, topic: str | None = None
    ) -> list[LocalResource]:
        key = self._key("local-resources", region.value, topic)

        async def fetch() -> list[LocalResource]:
            result = await self._generator.generate(
                prompts.local_resources_prompt(region, topic),
                GenerateOptions(use_web_grounding=True),
            )
            return normalize_local_resources(result.text)

        return await self._run(OperationFamily.LOCAL_RESOURCES, key, fetch, _LOCAL_RESOURCE_LIST)

    def view_state(self) -> dict[OperationFamily, OperationState]:
        return {
            family: state.model_copy(update={"items": list(state.items)})
            for family, state in self._state.items()
        }

    # ------------------------------------------------------------------
    # Gemeinsamer Ablauf
    # ------------------------------------------------------------------

    def _key(self, operation: str, *args: str | None) -> str:
        return build_key(operation, *args, namespace=self._namespace, version=self._version)

    async def _run(
        self,
        family: OperationFamily,
        key: str,
        fetch: Callable[[], Awaitable[list[T]]],
        adapter: TypeAdapter[list[T]],
    ) -> list[T]:
        request_id = self._epochs[family].begin()
        state = self._state[family]
        state.request_id = request_id
        state.loading = True

        try:
            items = await self._load(family, key, fetch, adapter)
        except BaseException:
            if self._epochs[family].is_current(request_id):
                state.loading = False
            raise

        if self._epochs[family].is_current(request_id):
            state.items = list(items)
            state.loading = False
        else:
            logger.debug(
                "Discarding stale %s result (request %d, current %d)",
                family.value,
                request_id,
                self._epochs[family].current,
            )
            STALE_RESULTS_DISCARDED.labels(family=family.value).inc()
        return items

    async def _load(
        self,
        family: OperationFamily,
        key: str,
        fetch: Callable[[], Awaitable[list[T]]],
        adapter: TypeAdapter[list[T]],
    ) -> list[T]:
        cached = await self._cache.get(key, validate=adapter.validate_python)
        if cached is not None:
            return cached

        try:
            with REMOTE_CALL_DURATION.labels(operation=family.value).time():
                items = await fetch()
        except RemoteContentError:
            REMOTE_CALL_COUNT.labels(operation=family.value, status="error").inc()
            logger.exception("Remote call for %s failed", family.value)
            return []
        except MalformedResponseError as e:
            REMOTE_CALL_COUNT.labels(operation=family.value, status="malformed").inc()
            logger.warning("Malformed %s response: %s", family.value, e.detail)
            logger.debug("Raw %s response text: %r", family.value, e.raw_text)
            return []

        REMOTE_CALL_COUNT.labels(operation=family.value, status="ok").inc()
        # Auch überholte Anfragen cachen: der Wert hängt nur vom Key ab
        await self._cache.set(key, adapter.dump_python(items, mode="json"))
        return items


def _source_of(url: str) -> str | None:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host.removeprefix("www.")
