from __future__ import annotations

from typing import Any

from storefront.domain.models import Region

PRODUCT_COUNT = 6
INSIGHT_COUNT = 3
PRODUCT_TEMPERATURE = 0.3

DEFAULT_PRODUCT_QUERY = "best products for aging parents"
_HOLIDAY_QUERY_MARKERS = ("black friday", "gift")


def resolve_product_query(query: str | None, category: str | None) -> str:
    """Leere Suchen werden durch eine breite Standardsuche ersetzt."""
    if query and query.strip():
        return query.strip()
    if category:
        return f"best {category} products"
    return DEFAULT_PRODUCT_QUERY


def is_holiday_context(query: str, category: str | None) -> bool:
    if category and "Holiday" in category:
        return True
    lowered = query.lower()
    return any(marker in lowered for marker in _HOLIDAY_QUERY_MARKERS)


def product_search_prompt(query: str, region: Region, category: str | None, holiday: bool) -> str:
    category_clause = f" in the category of {category}" if category else ""
    holiday_focus = (
        '\n3. "Gift-ability" and Holiday Appeal. Look for items that are popular '
        "specifically for Black Friday or make excellent gifts for aging parents."
        if holiday
        else ""
    )
    return (
        'You are a high-end curator for "SilverSage".\n'
        f'The user is looking for: "{query}"{category_clause}.\n\n'
        "CRITICAL INSTRUCTION: You must list REAL, EXISTING products from established "
        f"brands available in {region.value}. Do not invent fictional product names.\n\n"
        f"Find {PRODUCT_COUNT} distinct, high-quality products.\n"
        "Focus on:\n"
        "1. Design aesthetics (must not look medical).\n"
        f"2. Premium quality and durability.{holiday_focus}\n\n"
        f"Price: Estimate real market price in {region.value} currency."
    )


def product_schema(holiday: bool) -> dict[str, Any]:
    reasoning = (
        "Why this makes a great gift or deal."
        if holiday
        else "Why this fits the SilverSage aesthetic."
    )
    fields = ["id", "name", "brand", "description", "price", "currency", "category", "reasoning"]
    properties: dict[str, Any] = {name: {"type": "STRING"} for name in fields}
    properties["name"]["description"] = "Specific model name"
    properties["brand"]["description"] = "Real brand name"
    properties["reasoning"]["description"] = reasoning
    return {
        "type": "ARRAY",
        "items": {"type": "OBJECT", "properties": properties, "required": fields},
    }


def buying_options_prompt(product_name: str, region: Region) -> str:
    return (
        f'Find purchase pages for "{product_name}" in {region.value}. '
        "Prioritize major retailers like Amazon, Walmart, or direct manufacturer sites."
    )


def insights_prompt(region: Region) -> str:
    return (
        f'Act as a strategy consultant for the "Longevity Economy" in {region.value}.\n'
        f"Generate {INSIGHT_COUNT} specific, lucrative product niches for aging adults "
        "that are trending RIGHT NOW for the upcoming Holiday Season."
    )


INSIGHT_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING"},
            "description": {"type": "STRING"},
            "opportunityLevel": {"type": "STRING", "enum": ["High", "Medium", "Niche"]},
            "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
        "required": ["title", "description", "opportunityLevel", "tags"],
    },
}


def local_resources_prompt(region: Region, topic: str | None) -> str:
    focus = f" focused on {topic.strip()}" if topic and topic.strip() else ""
    return (
        f"List real local support resources for aging adults and their caregivers in "
        f"{region.value}{focus}. Include government programs, non-profit organisations "
        "and support groups.\n"
        "Reply ONLY with a JSON array of objects with the keys "
        '"name", "description", "contactInfo" (phone number or website) and '
        '"type" (one of "Government", "Non-Profit", "Support Group").'
    )
