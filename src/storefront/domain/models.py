# src/storefront/domain/models.py
from __future__ import annotations

from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


class Region(StrEnum):
    US = "United States"
    EU = "Europe"
    KR = "South Korea"
    JP = "Japan"
    AU = "Australia"


class Category(StrEnum):
    HOLIDAY = "Holiday Gift Guide"
    MOBILITY = "Mobility & Access"
    COGNITION = "Brain Health & Memory"
    TECH = "Assistive Tech"
    HOME = "Home & Living"
    WELLNESS = "Wellness & Supplements"
    LUXURY = "Luxury Care"


class OpportunityLevel(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    NICHE = "Niche"


class ResourceType(StrEnum):
    GOVERNMENT = "Government"
    NON_PROFIT = "Non-Profit"
    SUPPORT_GROUP = "Support Group"


class OperationFamily(StrEnum):
    """Jede Familie besitzt ihren eigenen Request-Zähler und View-State."""

    PRODUCT_SEARCH = "product_search"
    BUYING_OPTIONS = "buying_options"
    INSIGHTS = "insights"
    LOCAL_RESOURCES = "local_resources"


# ---------------------------------------------------------------------------
# Aggregate: Product
# Das Bild wird nie aus der Remote-Antwort übernommen, sondern lokal abgeleitet.
# ---------------------------------------------------------------------------


class Product(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=512)
    brand: str
    description: str
    price: str
    currency: str
    category: str
    reasoning: str
    image_url: str | None = None

    model_config = {"frozen": True}


class BuyingOption(BaseModel):
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    source: str = Field(description="Host der Kaufseite ohne führendes 'www.'")

    model_config = {"frozen": True}


class MarketInsight(BaseModel):
    title: str
    description: str
    opportunity_level: OpportunityLevel = Field(alias="opportunityLevel")
    tags: list[str] = Field(default_factory=list)

    model_config = {"frozen": True, "populate_by_name": True}


class LocalResource(BaseModel):
    name: str = Field(min_length=1)
    description: str
    contact_info: str = Field(alias="contactInfo", description="Telefonnummer oder Website")
    type: ResourceType

    model_config = {"frozen": True, "populate_by_name": True}


# ---------------------------------------------------------------------------
# Remote Content API
# ---------------------------------------------------------------------------


class GroundingLink(BaseModel):
    url: str
    title: str


class GenerationResult(BaseModel):
    text: str = ""
    grounding_links: list[GroundingLink] = Field(default_factory=list)


class GenerateOptions(BaseModel):
    """Strenges JSON-Schema und Web-Grounding schließen sich gegenseitig aus."""

    response_schema: dict[str, Any] | None = None
    use_web_grounding: bool = False
    temperature: float | None = Field(default=None, ge=0, le=2)

    @model_validator(mode="after")
    def schema_excludes_grounding(self) -> Self:
        if self.response_schema is not None and self.use_web_grounding:
            raise ValueError("response_schema und use_web_grounding schließen sich aus")
        return self

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# View State
# ---------------------------------------------------------------------------


class OperationState(BaseModel):
    request_id: int = 0
    loading: bool = False
    items: list[Any] = Field(default_factory=list)


class SessionViewState(BaseModel):
    session_id: str
    product_search: OperationState
    buying_options: OperationState
    insights: OperationState
    local_resources: OperationState


class SessionCreated(BaseModel):
    session_id: str
