"""
Application container and per-request dependencies.

Long-lived objects (stores, repositories, stateless services) live on
``app.state.container``. Everything bound to a browser session (identity,
cart, checkout) is built per request from the ``X-Guest-Id`` and
``Authorization: Bearer`` headers.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request

from storefront.core.config import Settings
from storefront.core.events import CartCountNotifier
from storefront.core.exceptions import AuthenticationRequired
from storefront.core.logging_config import logger
from storefront.core.results import OperationResult
from storefront.core.stale import RequestGeneration
from storefront.domain.identity import AuthenticatedUser
from storefront.domain.pricing import PricingEngine
from storefront.infra.datastore import DataStore
from storefront.integrations.redis_kv import RedisKeyValueStore
from storefront.repositories import (
    BannerRepository,
    CouponRepository,
    LocalCartStore,
    OrderRepository,
    ProductRepository,
    ProfileRepository,
    RemoteCartStore,
    ReviewRepository,
    WishlistRepository,
)
from storefront.services import (
    AdminService,
    CartService,
    CartSummaryLoader,
    CatalogService,
    CheckoutOrchestrator,
    CouponLookup,
    CouponResolver,
    CouponStatus,
    DataStoreAuthProvider,
    IdentityProvider,
    OrderService,
    ProfileService,
    ReviewService,
    Session,
)

GUEST_HEADER = "X-Guest-Id"
GUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,64}$")

COUPON_FAILURE_STATUS = {
    CouponStatus.NOT_FOUND: 404,
    CouponStatus.INVALID: 400,
    CouponStatus.ERROR: 503,
}


@dataclass
class Container:
    settings: Settings
    store: DataStore
    kv: RedisKeyValueStore
    notifier: CartCountNotifier
    pricing: PricingEngine
    auth: DataStoreAuthProvider
    local_carts: LocalCartStore
    remote_carts: RemoteCartStore
    products: ProductRepository
    catalog: CatalogService
    coupons: CouponResolver
    orders: OrderService
    order_repo: OrderRepository
    reviews: ReviewService
    profiles: ProfileService
    admin: AdminService
    summary_generations: RequestGeneration = field(default_factory=RequestGeneration)


def build_container(
    settings: Settings,
    store: DataStore,
    kv: RedisKeyValueStore | None = None,
    notifier: CartCountNotifier | None = None,
) -> Container:
    kv = kv or RedisKeyValueStore(settings.redis_url)
    notifier = notifier or CartCountNotifier.from_redis_url(settings.redis_url, kv)
    products = ProductRepository(store)
    banners = BannerRepository(store)
    order_repo = OrderRepository(store)
    profiles = ProfileRepository(store)
    orders = OrderService(order_repo, products, profiles)
    return Container(
        settings=settings,
        store=store,
        kv=kv,
        notifier=notifier,
        pricing=PricingEngine.from_config(settings.pricing),
        auth=DataStoreAuthProvider(store, kv, token_ttl_seconds=settings.cart.auth_token_ttl_seconds),
        local_carts=LocalCartStore(kv, ttl_seconds=settings.cart.guest_cart_ttl_seconds),
        remote_carts=RemoteCartStore(store),
        products=products,
        catalog=CatalogService(products, banners),
        coupons=CouponResolver(store, CouponRepository(store)),
        orders=orders,
        order_repo=order_repo,
        reviews=ReviewService(ReviewRepository(store), order_repo, products, profiles),
        profiles=ProfileService(profiles, WishlistRepository(store), products),
        admin=AdminService(products, banners, profiles, orders),
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


def parse_session(guest_id: str | None, authorization: str | None) -> Session:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    if not guest_id or not GUEST_ID_PATTERN.match(guest_id):
        guest_id = uuid.uuid4().hex
    return Session(guest_id=guest_id, auth_token=token)


def get_session(request: Request) -> Session:
    """Session for this request; the (possibly new) guest id is echoed back by middleware."""
    session = getattr(request.state, "session", None)
    if session is None:
        session = parse_session(request.headers.get(GUEST_HEADER), request.headers.get("Authorization"))
        request.state.session = session
    return session


@dataclass
class RequestContext:
    """Session-bound services for one request."""

    container: Container
    session: Session
    identity: IdentityProvider
    cart: CartService

    def summary_loader(self) -> CartSummaryLoader:
        c = self.container
        return CartSummaryLoader(
            self.cart, c.products, c.pricing, generations=c.summary_generations, key=self.session.guest_id
        )

    def checkout(self) -> CheckoutOrchestrator:
        c = self.container
        return CheckoutOrchestrator(self.identity, self.cart, c.store, c.pricing, c.order_repo, kv=c.kv)


def get_context(
    container: Container = Depends(get_container),
    session: Session = Depends(get_session),
) -> RequestContext:
    identity = IdentityProvider(container.auth, session)
    cart = CartService(
        identity,
        container.local_carts,
        container.remote_carts,
        container.notifier,
        container.kv,
        merge_guard_ttl=container.settings.cart.auth_token_ttl_seconds,
    )
    return RequestContext(container, session, identity, cart)


async def require_user(ctx: RequestContext = Depends(get_context)) -> AuthenticatedUser:
    identity = await ctx.identity.resolve()
    if not isinstance(identity, AuthenticatedUser):
        raise AuthenticationRequired()
    return identity


def raise_for_result(result: OperationResult, status_code: int | None = None) -> None:
    """Turn a failed service result into an HTTP error carrying its user message."""
    if result.success:
        return
    if status_code is None:
        status_code = 400 if result.errors else 503
    message = result.message
    logger.debug("Request failed with %s: %s", status_code, message)
    raise HTTPException(
        status_code=status_code,
        detail={
            "title": message.title if message else "Request failed",
            "description": message.description if message else "",
            "errors": result.errors,
        },
    )


def raise_for_coupon(lookup: CouponLookup) -> None:
    """Reject a request whose coupon code did not resolve to an active coupon."""
    if lookup.status not in COUPON_FAILURE_STATUS:
        return
    raise HTTPException(
        status_code=COUPON_FAILURE_STATUS[lookup.status],
        detail={**lookup.message.to_dict(), "status": lookup.status.value},
    )
