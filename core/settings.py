"""Configuration centralisée (backend core) avec validation minimale."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _str_env(name: str, default: str = "") -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


def _optional_env(name: str) -> str | None:
    value = _str_env(name)
    return value or None


@dataclass(frozen=True)
class AppSettings:
    app_env: str = "development"
    database_url: str = ""
    db_pool_size: int = 10
    db_pool_max_overflow: int = 20
    cors_allowed_origins: list[str] = field(default_factory=list)

    admin_api_key: str | None = None

    pos_webhook_secret: str | None = None
    storefront_webhook_secret: str | None = None
    marketplace_webhook_secret: str | None = None
    marketplace_verification_token: str = ""
    marketplace_endpoint_url: str = ""

    square_access_token: str | None = None
    square_environment: str = "sandbox"
    square_location_id: str = ""
    ebay_client_id: str | None = None
    ebay_client_secret: str | None = None
    ebay_refresh_token: str | None = None
    ebay_environment: str = "sandbox"
    channel_timeout_seconds: float = 10.0

    delivery_fee: Decimal = Decimal("15")
    promo_discount_rate: Decimal = Decimal("0.15")
    business_timezone: str = "Europe/Paris"
    reference_snapshot_ttl_seconds: int = 300
    processed_event_ttl_hours: int = 72
    public_base_url: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.app_env in {"prod", "production", "staging"}

    @staticmethod
    def load() -> "AppSettings":
        cors_raw = os.getenv("CORS_ALLOWED_ORIGINS")
        cors = [entry.strip() for entry in cors_raw.split(",") if entry.strip()] if cors_raw else []
        return AppSettings(
            app_env=_str_env("APP_ENV", _str_env("ENV", "development")).lower(),
            database_url=_str_env("DATABASE_URL"),
            db_pool_size=int(_str_env("DB_POOL_SIZE", "10")),
            db_pool_max_overflow=int(_str_env("DB_POOL_MAX_OVERFLOW", "20")),
            cors_allowed_origins=cors,
            admin_api_key=_optional_env("ADMIN_API_KEY"),
            pos_webhook_secret=_optional_env("POS_WEBHOOK_SECRET"),
            storefront_webhook_secret=_optional_env("STOREFRONT_WEBHOOK_SECRET"),
            marketplace_webhook_secret=_optional_env("MARKETPLACE_WEBHOOK_SECRET"),
            marketplace_verification_token=_str_env("MARKETPLACE_VERIFICATION_TOKEN"),
            marketplace_endpoint_url=_str_env("MARKETPLACE_ENDPOINT_URL"),
            square_access_token=_optional_env("SQUARE_ACCESS_TOKEN"),
            square_environment=_str_env("SQUARE_ENV", "sandbox").lower(),
            square_location_id=_str_env("SQUARE_LOCATION_ID"),
            ebay_client_id=_optional_env("EBAY_CLIENT_ID"),
            ebay_client_secret=_optional_env("EBAY_CLIENT_SECRET"),
            ebay_refresh_token=_optional_env("EBAY_REFRESH_TOKEN"),
            ebay_environment=_str_env("EBAY_ENV", "sandbox").lower(),
            channel_timeout_seconds=float(_str_env("CHANNEL_TIMEOUT_SECONDS", "10")),
            delivery_fee=Decimal(_str_env("DELIVERY_FEE", "15")),
            promo_discount_rate=Decimal(_str_env("PROMO_DISCOUNT_RATE", "0.15")),
            business_timezone=_str_env("BUSINESS_TIMEZONE", "Europe/Paris"),
            reference_snapshot_ttl_seconds=int(_str_env("REFERENCE_SNAPSHOT_TTL_SECONDS", "300")),
            processed_event_ttl_hours=int(_str_env("PROCESSED_EVENT_TTL_HOURS", "72")),
            public_base_url=_str_env("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/"),
        )


__all__ = ["AppSettings"]
