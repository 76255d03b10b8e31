from __future__ import annotations

from decimal import Decimal

import pytest

from storefront.core.config import PricingConfig
from storefront.domain.cart import EnrichedCartLine
from storefront.domain.coupon import Coupon, DiscountType
from storefront.domain.pricing import (
    MethodShipping,
    PricingEngine,
    ThresholdShipping,
    calculate_cart_total,
    compute_breakdown,
    coupon_discount,
)


def _line(price: int, quantity: int = 1, discount_price: int | None = None, pid: str = "p1") -> EnrichedCartLine:
    return EnrichedCartLine(pid, quantity, "Item", price, discount_price)


def _percent(value: str) -> Coupon:
    return Coupon("SAVE", DiscountType.PERCENTAGE, Decimal(value))


def _fixed(value: int) -> Coupon:
    return Coupon("FLAT", DiscountType.FIXED, Decimal(value))


def test_worked_example_with_item_discount_coupon_and_tax() -> None:
    lines = [_line(10000, 2, discount_price=8000)]
    breakdown = compute_breakdown(
        lines,
        _percent("10"),
        "standard",
        shipping=MethodShipping({"standard": 20000}),
        tax_rate=Decimal("0.11"),
    )

    assert breakdown.subtotal == 16000
    assert breakdown.discount == 1600
    assert breakdown.shipping == 20000
    assert breakdown.tax == 1584
    assert breakdown.total == 35984


def test_total_relation_holds_exactly() -> None:
    lines = [_line(1999, 3), _line(4550, 1, discount_price=3333, pid="p2")]
    b = compute_breakdown(lines, _percent("15"), "express")
    assert b.total == b.subtotal + b.shipping + b.tax - b.discount


def test_effective_price_prefers_discount_price() -> None:
    assert calculate_cart_total([_line(1000, 2, discount_price=700), _line(300, 1, pid="p2")]) == 1700


def test_zero_discount_price_is_used() -> None:
    assert calculate_cart_total([_line(1000, 1, discount_price=0)]) == 0


def test_fixed_coupon_is_clamped_to_subtotal() -> None:
    b = compute_breakdown([_line(500)], _fixed(2000), "standard")
    assert b.discount == 500
    assert b.tax == 0
    assert b.total == b.shipping


def test_percentage_discount_rounds_half_up() -> None:
    assert coupon_discount(1005, _percent("10")) == 101
    assert coupon_discount(1004, _percent("10")) == 100


def test_no_coupon_means_no_discount() -> None:
    assert coupon_discount(5000, None) == 0


def test_empty_cart_has_zero_subtotal_and_tax() -> None:
    b = compute_breakdown([], _percent("50"), "standard")
    assert (b.subtotal, b.discount, b.tax) == (0, 0, 0)
    assert b.total == b.shipping


def test_tax_is_not_charged_on_shipping() -> None:
    b = compute_breakdown([_line(1000)], None, "overnight", tax_rate=Decimal("0.10"))
    assert b.tax == 100
    assert b.shipping == 4999


def test_threshold_shipping_is_free_only_above_threshold() -> None:
    policy = ThresholdShipping(flat_fee=999, free_threshold=10000)
    assert policy.fee(10000) == 999
    assert policy.fee(10001) == 0


def test_unknown_shipping_method_is_rejected() -> None:
    with pytest.raises(ValueError):
        compute_breakdown([_line(100)], None, "teleport")


class TestPricingEngine:
    def test_cart_and_checkout_contexts_use_their_own_shipping(self) -> None:
        engine = PricingEngine.from_config(PricingConfig())
        lines = [_line(12000)]

        cart = engine.cart_breakdown(lines)
        checkout = engine.checkout_breakdown(lines, None, "express")

        assert cart.shipping == 0
        assert checkout.shipping == 2499
        assert cart.subtotal == checkout.subtotal == 12000

    def test_configured_tax_rate_is_applied(self) -> None:
        engine = PricingEngine.from_config(PricingConfig(tax_rate=Decimal("0.20")))
        assert engine.cart_breakdown([_line(1000)]).tax == 200

    def test_shipping_options_lists_methods(self) -> None:
        engine = PricingEngine.from_config(PricingConfig())
        ids = [option["id"] for option in engine.shipping_options()]
        assert ids == ["standard", "express", "overnight"]
