# src/storefront/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "SilverSage Curator API"
    app_version: str = "1.0.0"
    debug: bool = False

    # API Keys: Mapping von API-Key zu Tenant-ID (JSON-String als Env-Var)
    # Format: '{"key_abc123": "tenant_alice", "key_xyz789": "tenant_bob"}'
    api_keys: dict[str, str] = Field(default_factory=dict)

    # Remote Content API (Gemini)
    gemini_api_key: str = Field(default="")
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    remote_timeout_seconds: float = Field(default=30.0, gt=0)

    # Response Cache
    cache_ttl_seconds: int = Field(default=3600, gt=0)
    cache_namespace: str = "silversage"
    cache_version: str = "v1"

    # Session Storage: ohne Datenbank-URL wird rein im Speicher gecacht
    session_storage_capacity_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    session_database_url: str | None = None
    # Sessions ohne Zugriff werden nach dieser Zeit beendet und geleert
    session_idle_seconds: int = Field(default=1800, gt=0)

    # Affiliate-Programme: Retailer -> Partner-ID
    affiliate_ids: dict[str, str] = Field(
        default_factory=lambda: {
            "amazon": "silversage-20",
            "walmart": "1234567",
            "target": "example_id",
        }
    )

    # Lokale Produktbilder
    image_base_url: str = "/static/products"

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
