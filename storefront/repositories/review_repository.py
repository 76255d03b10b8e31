"""Review repository."""
from __future__ import annotations

from typing import Any

from storefront.infra.datastore import utc_now

from .base import BaseRepository

REVIEW_FIELDS = ("rating", "title", "comment")


class ReviewRepository(BaseRepository):
    table = "reviews"

    async def get(self, review_id: str, user_id: str | None = None) -> dict[str, Any] | None:
        filters: dict[str, Any] = {"id": review_id}
        if user_id:
            filters["user_id"] = user_id
        return await self._first(filters)

    async def find(self, user_id: str, product_id: str, order_id: str | None = None) -> dict[str, Any] | None:
        filters: dict[str, Any] = {"user_id": user_id, "product_id": product_id}
        if order_id:
            filters["order_id"] = order_id
        return await self._first(filters)

    async def for_product(self, product_id: str) -> list[dict[str, Any]]:
        return await self.store.query(self.table, {"product_id": product_id}, order_by="created_at", descending=True)

    async def for_user(self, user_id: str) -> list[dict[str, Any]]:
        return await self.store.query(self.table, {"user_id": user_id}, order_by="created_at", descending=True)

    async def create(self, row: dict[str, Any]) -> dict[str, Any]:
        return await self.store.insert(self.table, row)

    async def update(self, review_id: str, user_id: str, data: dict[str, Any]) -> None:
        patch = {k: data[k] for k in REVIEW_FIELDS if k in data}
        patch["updated_at"] = utc_now()
        await self.store.update(self.table, {"id": review_id, "user_id": user_id}, patch)

    async def delete(self, review_id: str, user_id: str) -> None:
        await self.store.delete(self.table, {"id": review_id, "user_id": user_id})
