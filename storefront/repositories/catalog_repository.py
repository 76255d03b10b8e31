"""Product and banner repositories."""
from __future__ import annotations

from typing import Any, Iterable

from storefront.infra.datastore import In, utc_now

from .base import BaseRepository

PRODUCT_FIELDS = (
    "name",
    "description",
    "price",
    "discount_price",
    "category",
    "brand",
    "image_url",
    "in_stock",
    "stock_quantity",
    "featured",
)

BANNER_FIELDS = ("title", "description", "link", "image_url", "active")


class ProductRepository(BaseRepository):
    """Repository for the ``products`` table."""

    table = "products"

    async def get(self, product_id: str) -> dict[str, Any] | None:
        return await self._first({"id": product_id})

    async def get_many(self, product_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        ids = list(dict.fromkeys(str(pid) for pid in product_ids))
        if not ids:
            return {}
        rows = await self.store.query(self.table, {"id": In(ids)})
        return {str(row["id"]): row for row in rows}

    async def list(
        self,
        *,
        category: str | None = None,
        brand: str | None = None,
        featured: bool | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {}
        if category:
            filters["category"] = category
        if brand:
            filters["brand"] = brand
        if featured is not None:
            filters["featured"] = featured
        return await self.store.query(
            self.table, filters or None, order_by=order_by, descending=descending, limit=limit
        )

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        row = {key: data[key] for key in PRODUCT_FIELDS if key in data}
        return await self.store.insert(self.table, row)

    async def update(self, product_id: str, data: dict[str, Any]) -> None:
        patch = {key: data[key] for key in PRODUCT_FIELDS if key in data}
        patch["updated_at"] = utc_now()
        await self.store.update(self.table, {"id": product_id}, patch)

    async def set_rating(self, product_id: str, rating: float, reviews_count: int) -> None:
        await self.store.update(
            self.table,
            {"id": product_id},
            {"rating": rating, "reviews_count": reviews_count, "updated_at": utc_now()},
        )

    async def delete(self, product_id: str) -> None:
        await self.store.delete(self.table, {"id": product_id})


class BannerRepository(BaseRepository):
    """Repository for the ``banners`` table."""

    table = "banners"

    async def list(self, *, active_only: bool = False) -> list[dict[str, Any]]:
        filters = {"active": True} if active_only else None
        return await self.store.query(self.table, filters, order_by="created_at", descending=True)

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self.store.insert(self.table, {k: data[k] for k in BANNER_FIELDS if k in data})

    async def update(self, banner_id: str, data: dict[str, Any]) -> None:
        patch = {k: data[k] for k in BANNER_FIELDS if k in data}
        patch["updated_at"] = utc_now()
        await self.store.update(self.table, {"id": banner_id}, patch)

    async def delete(self, banner_id: str) -> None:
        await self.store.delete(self.table, {"id": banner_id})
