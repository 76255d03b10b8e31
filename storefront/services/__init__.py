"""Service layer: everything the API shell is allowed to call."""
from __future__ import annotations

from .admin_service import AdminService
from .cart_service import CartService
from .cart_view import CartSummary, CartSummaryLoader
from .catalog_service import CatalogService, ProductFilters
from .checkout_service import CheckoutOrchestrator, CheckoutResult, CheckoutState, FailureKind
from .coupon_service import CouponLookup, CouponResolver, CouponStatus
from .identity import AuthProvider, DataStoreAuthProvider, IdentityProvider, LoginEvent, Session
from .order_service import OrderService
from .profile_service import ProfileService
from .review_service import ReviewService

__all__ = [
    "AdminService",
    "AuthProvider",
    "CartService",
    "CartSummary",
    "CartSummaryLoader",
    "CatalogService",
    "CheckoutOrchestrator",
    "CheckoutResult",
    "CheckoutState",
    "CouponLookup",
    "CouponResolver",
    "CouponStatus",
    "DataStoreAuthProvider",
    "FailureKind",
    "IdentityProvider",
    "LoginEvent",
    "OrderService",
    "ProductFilters",
    "ProfileService",
    "ReviewService",
    "Session",
]
