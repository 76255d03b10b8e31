"""Pricing engine: cart lines + coupon + shipping selection -> breakdown.

Pure and synchronous. All amounts are integer minor units; percentage
discounts and tax are rounded half-up to the nearest minor unit, so the
relation ``total == subtotal + shipping + tax - discount`` holds exactly.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from storefront.core.money import apply_rate, round_minor
from storefront.domain.cart import EnrichedCartLine
from storefront.domain.coupon import Coupon, DiscountType
from storefront.domain.order import ShippingMethod

DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_METHOD_FEES: Mapping[str, int] = {
    ShippingMethod.STANDARD: 999,
    ShippingMethod.EXPRESS: 2499,
    ShippingMethod.OVERNIGHT: 4999,
}


@dataclass(frozen=True, slots=True)
class PricingBreakdown:
    subtotal: int
    discount: int
    shipping: int
    tax: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
        }


class ShippingPolicy(ABC):
    """How a display context prices shipping."""

    @abstractmethod
    def fee(self, subtotal: int, method: str | None) -> int:
        ...


@dataclass(frozen=True)
class ThresholdShipping(ShippingPolicy):
    """Flat fee, free once the subtotal exceeds the threshold (cart page)."""

    flat_fee: int = 999
    free_threshold: int = 10000

    def fee(self, subtotal: int, method: str | None = None) -> int:
        if subtotal > self.free_threshold:
            return 0
        return self.flat_fee


@dataclass(frozen=True)
class MethodShipping(ShippingPolicy):
    """Fixed fee per shipping method (checkout page)."""

    fees: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_METHOD_FEES))

    def fee(self, subtotal: int, method: str | None) -> int:
        key = ShippingMethod.normalize(method)
        if key not in self.fees:
            raise ValueError(f"Unknown shipping method: {key}")
        return int(self.fees[key])


def effective_unit_price(line: EnrichedCartLine) -> int:
    return line.discount_price if line.discount_price is not None else line.price


def calculate_cart_total(lines: Iterable[EnrichedCartLine]) -> int:
    return sum(effective_unit_price(line) * line.quantity for line in lines)


def coupon_discount(subtotal: int, coupon: Coupon | None) -> int:
    if coupon is None or subtotal <= 0:
        return 0
    if coupon.discount_type == DiscountType.PERCENTAGE:
        raw = round_minor(Decimal(subtotal) * coupon.discount_value / Decimal(100))
    else:
        raw = round_minor(coupon.discount_value)
    return min(max(raw, 0), subtotal)


def compute_breakdown(
    lines: Iterable[EnrichedCartLine],
    coupon: Coupon | None,
    shipping_method: str | None = ShippingMethod.STANDARD,
    *,
    shipping: ShippingPolicy | None = None,
    tax_rate: Decimal | None = None,
) -> PricingBreakdown:
    policy = shipping or MethodShipping()
    rate = DEFAULT_TAX_RATE if tax_rate is None else tax_rate

    subtotal = calculate_cart_total(lines)
    discount = coupon_discount(subtotal, coupon)
    shipping_fee = max(0, policy.fee(subtotal, shipping_method))
    tax = max(0, apply_rate(subtotal - discount, rate))
    total = max(0, subtotal + shipping_fee + tax - discount)
    return PricingBreakdown(subtotal=subtotal, discount=discount, shipping=shipping_fee, tax=tax, total=total)


class PricingEngine:
    """Binds the configured shipping policies and tax rate for both display contexts."""

    def __init__(
        self,
        *,
        tax_rate: Decimal = DEFAULT_TAX_RATE,
        cart_shipping: ShippingPolicy | None = None,
        checkout_shipping: ShippingPolicy | None = None,
    ) -> None:
        self.tax_rate = tax_rate
        self.cart_shipping = cart_shipping or ThresholdShipping()
        self.checkout_shipping = checkout_shipping or MethodShipping()

    @classmethod
    def from_config(cls, config: Any) -> PricingEngine:
        return cls(
            tax_rate=config.tax_rate,
            cart_shipping=ThresholdShipping(config.cart_shipping_fee, config.free_shipping_threshold),
            checkout_shipping=MethodShipping(dict(config.shipping_fees)),
        )

    def cart_breakdown(self, lines: Iterable[EnrichedCartLine], coupon: Coupon | None = None) -> PricingBreakdown:
        return compute_breakdown(lines, coupon, None, shipping=self.cart_shipping, tax_rate=self.tax_rate)

    def checkout_breakdown(
        self,
        lines: Iterable[EnrichedCartLine],
        coupon: Coupon | None,
        shipping_method: str | None,
    ) -> PricingBreakdown:
        return compute_breakdown(
            lines, coupon, shipping_method, shipping=self.checkout_shipping, tax_rate=self.tax_rate
        )

    def shipping_options(self) -> list[dict[str, Any]]:
        fees = getattr(self.checkout_shipping, "fees", {})
        return [{"id": method, "price": int(fee)} for method, fee in fees.items()]
