"""Environment-driven configuration objects for the storefront."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from storefront.core.exceptions import ConfigurationException


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"true", "1", "yes", "y"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return Decimal(default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ConfigurationException(f"{name} must be a decimal number, got {raw!r}") from exc


@dataclass(slots=True)
class DatabaseConfig:
    url: str | None
    min_connections: int = 1
    max_connections: int = 5
    pool_wait_timeout: int = 60


@dataclass(slots=True)
class PricingConfig:
    """Amounts in minor units; rates as decimals (0.08 == 8%)."""

    tax_rate: Decimal = Decimal("0.08")
    cart_shipping_fee: int = 999
    free_shipping_threshold: int = 10000
    shipping_fees: dict[str, int] = field(
        default_factory=lambda: {"standard": 999, "express": 2499, "overnight": 4999}
    )
    currency: str = "USD"


@dataclass(slots=True)
class CartConfig:
    guest_cart_ttl_seconds: int = 30 * 24 * 60 * 60
    auth_token_ttl_seconds: int = 7 * 24 * 60 * 60


@dataclass(slots=True)
class ApiConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    rate_limit_default: str = "100/minute"
    rate_limit_disabled: bool = False


@dataclass(slots=True)
class Settings:
    database: DatabaseConfig
    redis_url: str | None
    pricing: PricingConfig
    cart: CartConfig
    api: ApiConfig
    environment: str = "production"
    sentry_dsn: str | None = None
    log_level: str = "INFO"


def load_pricing_config() -> PricingConfig:
    tax_rate = _env_decimal("TAX_RATE", "0.08")
    if tax_rate < 0 or tax_rate >= 1:
        raise ConfigurationException("TAX_RATE must be within [0, 1)")
    fees = {
        "standard": _env_int("SHIPPING_STANDARD_FEE", 999),
        "express": _env_int("SHIPPING_EXPRESS_FEE", 2499),
        "overnight": _env_int("SHIPPING_OVERNIGHT_FEE", 4999),
    }
    if any(fee < 0 for fee in fees.values()):
        raise ConfigurationException("Shipping fees must not be negative")
    return PricingConfig(
        tax_rate=tax_rate,
        cart_shipping_fee=_env_int("CART_SHIPPING_FEE", 999),
        free_shipping_threshold=_env_int("FREE_SHIPPING_THRESHOLD", 10000),
        shipping_fees=fees,
        currency=os.getenv("CURRENCY", "USD").upper(),
    )


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    database = DatabaseConfig(
        url=os.getenv("DATABASE_URL") or None,
        min_connections=_env_int("DB_MIN_CONN", 1),
        max_connections=_env_int("DB_MAX_CONN", 5),
        pool_wait_timeout=_env_int("DB_POOL_WAIT_TIMEOUT", 60),
    )
    cart = CartConfig(
        guest_cart_ttl_seconds=_env_int("GUEST_CART_TTL_SECONDS", 30 * 24 * 60 * 60),
        auth_token_ttl_seconds=_env_int("AUTH_TOKEN_TTL_SECONDS", 7 * 24 * 60 * 60),
    )
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    api = ApiConfig(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=_env_int("API_PORT", _env_int("PORT", 8000)),
        cors_origins=origins or ["*"],
        rate_limit_default=os.getenv("RATE_LIMIT_DEFAULT", "100/minute"),
        rate_limit_disabled=_str_to_bool(os.getenv("RATE_LIMIT_DISABLED")),
    )

    return Settings(
        database=database,
        redis_url=os.getenv("REDIS_URL") or None,
        pricing=load_pricing_config(),
        cart=cart,
        api=api,
        environment=os.getenv("ENVIRONMENT", "production"),
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
