"""Catalog browsing: product listing, filtering, search suggestions, banners."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from storefront.core.exceptions import DataStoreError
from storefront.core.logging_config import logger
from storefront.core.money import coerce_amount
from storefront.core.stale import RequestGeneration
from storefront.repositories.catalog_repository import BannerRepository, ProductRepository

SORT_OPTIONS = ("newest", "price-low", "price-high", "rating")

# Bounds in minor units: (min inclusive, max inclusive); None is open.
PRICE_RANGES: dict[str, tuple[int | None, int | None]] = {
    "under50": (None, 4999),
    "50-100": (5000, 10000),
    "100-200": (10000, 20000),
    "over200": (20001, None),
}

SUGGESTION_LIMIT = 5


@dataclass(slots=True)
class ProductFilters:
    search: str = ""
    category: str = ""
    brand: str = ""
    price_range: str = ""
    min_rating: float = 0
    featured: bool | None = None
    sort: str = "newest"


def effective_price(product: dict[str, Any]) -> int:
    discount = product.get("discount_price")
    return coerce_amount(discount if discount else product.get("price"))


def _created_at(product: dict[str, Any]) -> datetime:
    value = product.get("created_at")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.min.replace(tzinfo=timezone.utc)


def _matches_search(product: dict[str, Any], query: str) -> bool:
    haystacks = (product.get("name"), product.get("description"), product.get("category"))
    return any(query in str(text).lower() for text in haystacks if text)


def apply_filters(products: list[dict[str, Any]], filters: ProductFilters) -> list[dict[str, Any]]:
    result = list(products)
    query = filters.search.strip().lower()
    if query:
        result = [p for p in result if _matches_search(p, query)]
    if filters.category:
        wanted = filters.category.lower()
        result = [p for p in result if str(p.get("category") or "").lower() == wanted]
    if filters.brand:
        wanted = filters.brand.lower()
        result = [p for p in result if str(p.get("brand") or "").lower() == wanted]
    if filters.featured is not None:
        result = [p for p in result if bool(p.get("featured")) == filters.featured]
    bounds = PRICE_RANGES.get(filters.price_range)
    if bounds:
        low, high = bounds
        result = [
            p
            for p in result
            if (low is None or coerce_amount(p.get("price")) >= low)
            and (high is None or coerce_amount(p.get("price")) <= high)
        ]
    if filters.min_rating > 0:
        result = [p for p in result if float(p.get("rating") or 0) >= filters.min_rating]

    if filters.sort == "price-low":
        result.sort(key=effective_price)
    elif filters.sort == "price-high":
        result.sort(key=effective_price, reverse=True)
    elif filters.sort == "rating":
        result.sort(key=lambda p: float(p.get("rating") or 0), reverse=True)
    else:
        result.sort(key=_created_at, reverse=True)
    return result


class CatalogService:
    """Read side of the catalog; failures degrade to empty results."""

    def __init__(
        self,
        products: ProductRepository,
        banners: BannerRepository,
        generations: RequestGeneration | None = None,
    ) -> None:
        self._products = products
        self._banners = banners
        self._generations = generations or RequestGeneration()

    async def list_products(self, filters: ProductFilters | None = None) -> list[dict[str, Any]]:
        filters = filters or ProductFilters()
        try:
            rows = await self._products.list()
        except DataStoreError as e:
            logger.error(f"Failed to load products: {e}")
            return []
        return apply_filters(rows, filters)

    async def featured_products(self, limit: int = 8) -> list[dict[str, Any]]:
        try:
            return await self._products.list(featured=True, limit=limit)
        except DataStoreError as e:
            logger.error(f"Failed to load featured products: {e}")
            return []

    async def get_product(self, product_id: str) -> dict[str, Any] | None:
        try:
            return await self._products.get(product_id)
        except DataStoreError as e:
            logger.error(f"Failed to load product {product_id}: {e}")
            return None

    async def categories(self) -> list[str]:
        products = await self.list_products()
        return sorted({str(p["category"]) for p in products if p.get("category")})

    async def suggestions(self, query: str, *, scope: str = "search") -> list[dict[str, Any]] | None:
        """Up to five name matches; ``None`` when a newer query superseded this one."""
        token = self._generations.begin(scope)
        needle = (query or "").strip().lower()
        if not needle:
            return []
        try:
            rows = await self._products.list(order_by="name", descending=False)
        except DataStoreError as e:
            logger.error(f"Failed to load search suggestions: {e}")
            rows = []
        if not self._generations.is_current(token):
            return None
        matches = [row for row in rows if needle in str(row.get("name") or "").lower()]
        return [
            {
                "id": row["id"],
                "name": row.get("name"),
                "category": row.get("category"),
                "image_url": row.get("image_url"),
                "price": coerce_amount(row.get("price")),
            }
            for row in matches[:SUGGESTION_LIMIT]
        ]

    async def active_banners(self) -> list[dict[str, Any]]:
        try:
            return await self._banners.list(active_only=True)
        except DataStoreError as e:
            logger.error(f"Failed to load banners: {e}")
            return []
