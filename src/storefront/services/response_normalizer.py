from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from storefront.domain.models import LocalResource, MarketInsight, Product
from storefront.domain.ports import MalformedResponseError
from storefront.services.product_images import image_url_for

# ---------------------------------------------------------------------------
# Interne Rohdaten-Schemas (typisiertes Parsing der Modell-Antwort)
# ---------------------------------------------------------------------------


class _RemoteProduct(BaseModel):
    """Ein evtl. mitgeliefertes ``imageUrl`` wird bewusst nicht übernommen."""

    id: str
    name: str
    brand: str
    description: str
    price: str
    currency: str
    category: str
    reasoning: str


_PRODUCTS = TypeAdapter(list[_RemoteProduct])
_INSIGHTS = TypeAdapter(list[MarketInsight])
_LOCAL_RESOURCES = TypeAdapter(list[LocalResource])


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```") :]
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    return cleaned.strip()


def extract_json_payload(raw_text: str) -> list[Any]:
    """
    Extracts the JSON array from a possibly noisy model reply.

    Takes the text between the first ``[`` and the last ``]`` when present,
    which tolerates prose and code fences around the array. Otherwise falls
    back to stripping code fences.

    Raises:
        MalformedResponseError: If no JSON array can be parsed.
    """
    start = raw_text.find("[")
    end = raw_text.rfind("]")
    if start != -1 and end > start:
        candidate = raw_text[start : end + 1]
    else:
        candidate = _strip_code_fences(raw_text)

    try:
        payload = json.loads(candidate)
    except ValueError as e:
        raise MalformedResponseError(f"invalid JSON: {e}", raw_text) from e

    if not isinstance(payload, list):
        raise MalformedResponseError(
            f"expected a JSON array, got {type(payload).__name__}", raw_text
        )
    return payload


def _validate(adapter: TypeAdapter[Any], raw_text: str) -> list[Any]:
    payload = extract_json_payload(raw_text)
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"schema mismatch: {e.error_count()} error(s)", raw_text) from e


def normalize_products(raw_text: str, image_base_url: str) -> list[Product]:
    products = []
    for raw in _validate(_PRODUCTS, raw_text):
        try:
            product = Product(
                **raw.model_dump(),
                image_url=image_url_for(raw.brand, raw.name, raw.category, image_base_url),
            )
        except ValidationError as e:
            raise MalformedResponseError(f"invalid product '{raw.id}'", raw_text) from e
        products.append(product)
    return products


def normalize_insights(raw_text: str) -> list[MarketInsight]:
    return _validate(_INSIGHTS, raw_text)


def normalize_local_resources(raw_text: str) -> list[LocalResource]:
    return _validate(_LOCAL_RESOURCES, raw_text)
