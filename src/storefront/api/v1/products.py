from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_storefront_session
from storefront.domain.models import BuyingOption, Category, Product, Region
from storefront.services.session_registry import StorefrontSession

router = APIRouter(prefix="/sessions/{session_id}/products", tags=["Products"])

SessionDep = Annotated[StorefrontSession, Depends(get_storefront_session)]


@router.get("/search", response_model=list[Product])
async def search_products(
    session: SessionDep,
    q: str = Query("", max_length=256),
    region: Region = Region.US,
    category: Category | None = None,
) -> list[Product]:
    """
    Sucht kuratierte Produkte. Eine leere Suche liefert eine breite
    Standardauswahl für die gewählte Kategorie.
    """
    return await session.curation.search_products(
        q, region, category.value if category else None
    )


@router.get("/buying-options", response_model=list[BuyingOption])
async def find_buying_options(
    session: SessionDep,
    product_name: str = Query(..., min_length=1, max_length=512),
    region: Region = Region.US,
) -> list[BuyingOption]:
    """Kaufseiten für ein Produkt, bevorzugte Partner zuerst, maximal vier."""
    return await session.curation.find_buying_options(product_name, region)
