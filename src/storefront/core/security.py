# src/storefront/core/security.py
import hashlib
import logging

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from slowapi.util import get_remote_address

from storefront.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "X-API-Key"

_API_KEY_HEADER = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=True)


async def get_tenant_id(
    api_key: str = Security(_API_KEY_HEADER),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    FastAPI Dependency: Löst den API-Key zur Tenant-ID auf.
    Sessions gehören immer genau einem Tenant.
    """
    tenant_id = settings.api_keys.get(api_key)
    if tenant_id is None:
        logger.warning("Rejected request with unknown API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return tenant_id


def rate_limit_key(request: Request) -> str:
    """
    Limiter-Schlüssel: pro API-Key (gehasht), ohne Key pro Client-Adresse.
    Mehrere Tenants hinter einem Proxy teilen sich so kein Kontingent.
    """
    api_key = request.headers.get(API_KEY_HEADER_NAME)
    if api_key:
        return "key:" + hashlib.sha256(api_key.encode()).hexdigest()[:16]
    return get_remote_address(request)
