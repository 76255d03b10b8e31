"""Cart/checkout page data: enriched lines plus a pricing breakdown."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from storefront.core.logging_config import logger
from storefront.core.money import coerce_amount
from storefront.core.stale import RequestGeneration
from storefront.domain.cart import CartLine, EnrichedCartLine
from storefront.domain.coupon import Coupon
from storefront.domain.pricing import PricingBreakdown, PricingEngine
from storefront.repositories.catalog_repository import ProductRepository

from .cart_service import CartService


@dataclass(slots=True)
class CartSummary:
    lines: list[EnrichedCartLine]
    breakdown: PricingBreakdown
    coupon: Coupon | None = None
    missing_product_ids: list[str] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [line.to_dict() for line in self.lines],
            "item_count": self.item_count,
            "coupon": self.coupon.to_dict() if self.coupon else None,
            "missing_product_ids": list(self.missing_product_ids),
            **self.breakdown.to_dict(),
        }


def enrich_line(line: CartLine, product: dict[str, Any]) -> EnrichedCartLine:
    discount = product.get("discount_price")
    return EnrichedCartLine(
        product_id=line.product_id,
        quantity=line.quantity,
        name=str(product.get("name") or ""),
        price=coerce_amount(product.get("price")),
        discount_price=coerce_amount(discount) if discount is not None else None,
        image_url=product.get("image_url"),
    )


async def enrich_lines(
    lines: list[CartLine], products: ProductRepository
) -> tuple[list[EnrichedCartLine], list[str]]:
    """Join lines with current product rows; lines whose product is gone are skipped."""
    if not lines:
        return [], []
    try:
        by_id = await products.get_many([line.product_id for line in lines])
    except Exception as e:
        logger.error(f"Failed to load products for cart: {e}")
        return [], []
    enriched: list[EnrichedCartLine] = []
    missing: list[str] = []
    for line in lines:
        product = by_id.get(line.product_id)
        if product is None:
            missing.append(line.product_id)
            continue
        enriched.append(enrich_line(line, product))
    if missing:
        logger.info("Cart references missing products: %s", ", ".join(missing))
    return enriched, missing


class CartSummaryLoader:
    """Loads cart summaries and drops results of superseded loads.

    Each ``load`` takes a generation token for its scope; if a newer load
    started (or the scope was cancelled) before this one finished, ``load``
    returns ``None`` instead of a summary.
    Loaders built with the same ``generations`` and ``key`` (one browser
    session) supersede each other across requests.
    """

    def __init__(
        self,
        cart: CartService,
        products: ProductRepository,
        pricing: PricingEngine,
        generations: RequestGeneration | None = None,
        key: str | None = None,
    ) -> None:
        self._cart = cart
        self._products = products
        self._pricing = pricing
        self._generations = generations or RequestGeneration()
        self._key = key

    def _scope(self, scope: str) -> str:
        return f"{self._key}:{scope}" if self._key else scope

    async def load(
        self,
        *,
        scope: str = "cart",
        coupon: Coupon | None = None,
        shipping_method: str | None = None,
    ) -> CartSummary | None:
        token = self._generations.begin(self._scope(scope))
        lines = await self._cart.get_cart_items()
        enriched, missing = await enrich_lines(lines, self._products)
        if not self._generations.settle(token):
            logger.debug("Discarding stale cart summary for scope %s", scope)
            return None
        if shipping_method is None:
            breakdown = self._pricing.cart_breakdown(enriched, coupon)
        else:
            breakdown = self._pricing.checkout_breakdown(enriched, coupon, shipping_method)
        return CartSummary(enriched, breakdown, coupon, missing)

    def cancel(self, scope: str | None = None) -> None:
        if scope is not None:
            self._generations.invalidate(self._scope(scope))
        elif self._key:
            self._generations.invalidate_prefix(f"{self._key}:")
        else:
            self._generations.invalidate()
