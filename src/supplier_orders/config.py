from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from supplier_orders.adapters.outbound.shopify.client import normalize_shop_domain

DEFAULT_SALT = "default-salt-change-in-production"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ShopifySettings:
    shop_domain: str
    access_token: str
    api_version: str = "2024-01"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    port: int = 8080
    log_level: str = "info"
    log_json: bool = False
    database_url: str | None = None  # None: in-memory adapters
    commerce_adapter: str = "fake"
    shopify: ShopifySettings | None = None
    api_key_hash_salt: str = DEFAULT_SALT

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings(
    environ: Mapping[str, str] | None = None, read_dotenv: bool = True
) -> Settings:
    """Reads settings from the environment (and an optional ``.env`` file).

    Raises ``ConfigError`` for malformed numbers, an unknown commerce adapter,
    or ``COMMERCE_ADAPTER=shopify`` without shop domain and access token.
    """
    if environ is None:
        if read_dotenv:
            load_dotenv()
        environ = os.environ

    def get(key: str, default: str = "") -> str:
        return (environ.get(key) or default).strip()

    commerce = get("COMMERCE_ADAPTER", "fake").lower()
    if commerce not in {"fake", "shopify"}:
        raise ConfigError(f"COMMERCE_ADAPTER must be 'fake' or 'shopify', got {commerce!r}")

    shopify: ShopifySettings | None = None
    domain = normalize_shop_domain(get("SHOPIFY_SHOP_DOMAIN"))
    token = get("SHOPIFY_ACCESS_TOKEN")
    if commerce == "shopify":
        if not domain:
            raise ConfigError("SHOPIFY_SHOP_DOMAIN is required")
        if not token:
            raise ConfigError("SHOPIFY_ACCESS_TOKEN is required")
    if domain and token:
        shopify = ShopifySettings(
            shop_domain=domain,
            access_token=token,
            api_version=get("SHOPIFY_API_VERSION", "2024-01"),
            timeout_seconds=_number(get, "SHOPIFY_TIMEOUT_SECONDS", "30", float),
        )

    return Settings(
        environment=get("ENVIRONMENT", "development").lower(),
        port=_number(get, "PORT", "8080", int),
        log_level=get("LOG_LEVEL", "info").lower(),
        log_json=get("LOG_JSON", "false").lower() in {"1", "true", "yes", "on"},
        database_url=get("DATABASE_URL") or None,
        commerce_adapter=commerce,
        shopify=shopify,
        api_key_hash_salt=get("API_KEY_HASH_SALT", DEFAULT_SALT),
    )


def _number(get, key: str, default: str, kind):
    raw = get(key, default)
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value
