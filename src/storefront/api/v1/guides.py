from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_storefront_session
from storefront.domain.models import LocalResource, MarketInsight, Region
from storefront.services.session_registry import StorefrontSession

router = APIRouter(prefix="/sessions/{session_id}", tags=["Guides"])

SessionDep = Annotated[StorefrontSession, Depends(get_storefront_session)]


@router.get("/insights", response_model=list[MarketInsight])
async def get_insights(
    session: SessionDep,
    region: Region = Region.US,
) -> list[MarketInsight]:
    """Seasonal care and market insights for a region."""
    return await session.curation.get_insights(region)


@router.get("/local-resources", response_model=list[LocalResource])
async def find_local_resources(
    session: SessionDep,
    region: Region = Region.US,
    topic: str | None = Query(default=None, max_length=256),
) -> list[LocalResource]:
    return await session.curation.find_local_resources(region, topic)
