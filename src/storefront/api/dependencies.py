# src/storefront/api/dependencies.py
import asyncio
from functools import lru_cache

import httpx
from fastapi import Depends, HTTPException, Security, status

from storefront.adapters.gemini import GeminiContentAdapter
from storefront.core.config import Settings, get_settings
from storefront.core.security import get_tenant_id
from storefront.domain.ports import ContentGeneratorPort, SessionNotFoundError, SessionStoragePort
from storefront.repositories.memory_storage import InMemorySessionStorage
from storefront.repositories.sqlite_storage import SQLiteSessionStorage, SQLiteStorageDatabase
from storefront.services.affiliate import AffiliateLinkTransformer
from storefront.services.cache_keys import namespace_prefix
from storefront.services.curation_service import CurationService
from storefront.services.response_cache import ResponseCache
from storefront.services.session_registry import SessionRegistry, StorefrontSession


# Shared HTTP Client (Connection Pooling)
@lru_cache
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": "SilverSageCurator/1.0"},
        follow_redirects=True,
    )


def get_content_generator(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> ContentGeneratorPort:
    return GeminiContentAdapter(
        http_client=client,
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.remote_timeout_seconds,
    )


def get_link_transformer(
    settings: Settings = Depends(get_settings),
) -> AffiliateLinkTransformer:
    return AffiliateLinkTransformer.from_affiliate_ids(settings.affiliate_ids)


# Singleton Storage-Datenbank (nur wenn SESSION_DATABASE_URL gesetzt ist)
_storage_database: SQLiteStorageDatabase | None = None

# Singleton Session Registry (Initialisiert beim ersten Zugriff)
_session_registry: SessionRegistry | None = None

# Serialisiert den ersten Aufbau, damit parallele Requests eine Registry teilen
_registry_lock = asyncio.Lock()


async def get_session_registry(
    settings: Settings = Depends(get_settings),
    generator: ContentGeneratorPort = Depends(get_content_generator),
    link_transformer: AffiliateLinkTransformer = Depends(get_link_transformer),
) -> SessionRegistry:
    global _session_registry
    if _session_registry is None:
        async with _registry_lock:
            if _session_registry is None:
                _session_registry = await _build_session_registry(
                    settings, generator, link_transformer
                )
    return _session_registry


async def _build_session_registry(
    settings: Settings,
    generator: ContentGeneratorPort,
    link_transformer: AffiliateLinkTransformer,
) -> SessionRegistry:
    global _storage_database
    capacity = settings.session_storage_capacity_bytes
    if settings.session_database_url:
        database = SQLiteStorageDatabase(settings.session_database_url)
        await database.initialize()
        _storage_database = database

        def storage_factory(session_id: str) -> SessionStoragePort:
            return SQLiteSessionStorage(database, session_id, capacity)
    else:

        def storage_factory(session_id: str) -> SessionStoragePort:
            return InMemorySessionStorage(capacity)

    def curation_factory(storage: SessionStoragePort) -> CurationService:
        cache = ResponseCache(
            storage,
            ttl_seconds=settings.cache_ttl_seconds,
            key_prefix=namespace_prefix(settings.cache_namespace, settings.cache_version),
        )
        return CurationService(
            generator=generator,
            cache=cache,
            link_transformer=link_transformer,
            image_base_url=settings.image_base_url,
            cache_namespace=settings.cache_namespace,
            cache_version=settings.cache_version,
        )

    return SessionRegistry(
        storage_factory, curation_factory, idle_seconds=settings.session_idle_seconds
    )


async def shutdown_sessions() -> None:
    global _session_registry, _storage_database, _registry_lock
    if _session_registry is not None:
        await _session_registry.end_all()
        _session_registry = None
    if _storage_database is not None:
        await _storage_database.dispose()
        _storage_database = None
    # Ein neuer Event-Loop (z.B. nächster Lifespan) bekommt ein frisches Lock
    _registry_lock = asyncio.Lock()


async def get_storefront_session(
    session_id: str,
    tenant_id: str = Security(get_tenant_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> StorefrontSession:
    try:
        return await registry.get(tenant_id, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
