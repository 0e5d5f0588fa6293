from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, Security, status

from storefront.api.dependencies import get_session_registry, get_storefront_session
from storefront.core.security import get_tenant_id
from storefront.domain.models import SessionCreated, SessionViewState
from storefront.domain.ports import SessionNotFoundError
from storefront.services.session_registry import SessionRegistry, StorefrontSession

router = APIRouter(prefix="/sessions", tags=["Sessions"])

TenantDep = Annotated[str, Security(get_tenant_id)]
RegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
SessionDep = Annotated[StorefrontSession, Depends(get_storefront_session)]


@router.post("/", response_model=SessionCreated, status_code=status.HTTP_201_CREATED)
async def create_session(
    tenant_id: TenantDep,
    registry: RegistryDep,
) -> SessionCreated:
    """Startet eine neue Storefront-Session mit leerem Cache."""
    session = await registry.create(tenant_id)
    return SessionCreated(session_id=session.id)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(
    session_id: str,
    tenant_id: TenantDep,
    registry: RegistryDep,
) -> Response:
    """Beendet die Session und verwirft ihren Cache."""
    try:
        await registry.end(tenant_id, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/state", response_model=SessionViewState)
async def get_view_state(session: SessionDep) -> SessionViewState:
    """Current results and loading flags of every operation family."""
    return session.view_state()
