from __future__ import annotations

import hashlib
import re

from storefront.domain.models import Category

# Anzahl lokal vorgehaltener Bilder pro Kategorie-Galerie
_GALLERY_SIZES: dict[str, int] = {
    Category.HOLIDAY.value: 12,
    Category.MOBILITY.value: 10,
    Category.COGNITION.value: 8,
    Category.TECH.value: 10,
    Category.HOME.value: 10,
    Category.WELLNESS.value: 8,
    Category.LUXURY.value: 6,
}
_GENERIC_GALLERY = "general"
_GENERIC_GALLERY_SIZE = 16


def _clean(value: str | None) -> str:
    return " ".join((value or "").split()).lower()


def _gallery_for(category: str | None) -> tuple[str, int]:
    cleaned = _clean(category)
    for name, size in _GALLERY_SIZES.items():
        if name.lower() == cleaned:
            return name, size
    return _GENERIC_GALLERY, _GENERIC_GALLERY_SIZE


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def derive_image_index(brand: str | None, name: str | None, category: str | None) -> int:
    """Same brand, name and category always give the same index, in every process."""
    _, size = _gallery_for(category)
    fingerprint = "|".join((_clean(brand), _clean(name), _clean(category)))
    digest = hashlib.sha256(fingerprint.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % size


def image_url_for(
    brand: str | None, name: str | None, category: str | None, base_url: str
) -> str:
    gallery, _ = _gallery_for(category)
    index = derive_image_index(brand, name, category)
    return f"{base_url.rstrip('/')}/{_slug(gallery)}/{index}.jpg"
