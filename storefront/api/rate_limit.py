from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront.core.config import ApiConfig


def _get_client_ip(request: Request) -> str:
    """Resolve client IP with proxy headers support."""
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        parts = [part.strip() for part in xff.split(",") if part.strip()]
        if parts:
            return parts[0]

    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return get_remote_address(request)


def build_limiter(api: ApiConfig, redis_url: str | None = None) -> Limiter:
    limits = [] if api.rate_limit_disabled else [api.rate_limit_default]
    if redis_url:
        return Limiter(
            key_func=_get_client_ip,
            default_limits=limits,
            storage_uri=redis_url,
            enabled=not api.rate_limit_disabled,
        )
    return Limiter(key_func=_get_client_ip, default_limits=limits, enabled=not api.rate_limit_disabled)


__all__ = ["build_limiter"]
