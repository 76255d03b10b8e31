"""
FastAPI application factory.

The shell is thin: routes translate HTTP into service calls and service
results into status codes.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from storefront import __version__
from storefront.core.config import Settings
from storefront.core.exceptions import AuthenticationRequired
from storefront.core.logging_config import logger
from storefront.services.checkout_service import LOGIN_PATH

from . import routes_account, routes_admin, routes_auth, routes_cart, routes_catalog, routes_checkout
from .deps import GUEST_HEADER, Container
from .rate_limit import build_limiter


def create_app(container: Container) -> FastAPI:
    settings: Settings = container.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Storefront API starting (environment=%s)", settings.environment)
        yield
        logger.info("Storefront API shutting down...")
        await container.notifier.close()
        close = getattr(container.store, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title="Storefront API",
        description="Cart, pricing and checkout API for the storefront",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )
    app.state.container = container

    app.state.limiter = build_limiter(settings.api, settings.redis_url)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(AuthenticationRequired)
    async def authentication_required(request: Request, exc: AuthenticationRequired):
        return JSONResponse(
            status_code=401,
            content={
                "detail": {"title": "Sign in required", "description": "Please sign in to continue."},
                "redirect_to": LOGIN_PATH,
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials="*" not in settings.api.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", GUEST_HEADER, "Sentry-Trace", "Baggage"],
        expose_headers=[GUEST_HEADER],
    )

    @app.middleware("http")
    async def echo_guest_id(request: Request, call_next):
        response = await call_next(request)
        session = getattr(request.state, "session", None)
        if session is not None:
            response.headers[GUEST_HEADER] = session.guest_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    api = APIRouter(prefix="/api/v1")
    api.include_router(routes_auth.router)
    api.include_router(routes_cart.router)
    api.include_router(routes_checkout.router)
    api.include_router(routes_catalog.router)
    api.include_router(routes_account.router)
    api.include_router(routes_admin.router)
    app.include_router(api)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__, "redis": container.kv.uses_redis}

    return app
