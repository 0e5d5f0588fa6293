# src/storefront/api/v1/router.py
from fastapi import APIRouter

from storefront.api.v1 import guides, products, sessions

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(sessions.router)
api_router.include_router(products.router)
api_router.include_router(guides.router)
