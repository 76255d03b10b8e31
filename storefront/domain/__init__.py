"""Domain layer: pure entities, rules and pricing."""
from storefront.domain.cart import CartLine, EnrichedCartLine, merge_lines
from storefront.domain.coupon import Coupon, DiscountType
from storefront.domain.identity import AuthenticatedUser, Guest, Identity
from storefront.domain.order import OrderStatus, PaymentMethod, ShippingInfo, ShippingMethod
from storefront.domain.pricing import PricingBreakdown, compute_breakdown

__all__ = [
    "AuthenticatedUser",
    "CartLine",
    "Coupon",
    "DiscountType",
    "EnrichedCartLine",
    "Guest",
    "Identity",
    "OrderStatus",
    "PaymentMethod",
    "PricingBreakdown",
    "ShippingInfo",
    "ShippingMethod",
    "compute_breakdown",
    "merge_lines",
]
