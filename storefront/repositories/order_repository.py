"""Order and order-item repository."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from storefront.infra.datastore import DataStore, Gte, In, utc_now

from .base import BaseRepository


class OrderRepository(BaseRepository):
    """Repository for ``orders`` and ``order_items``.

    There is deliberately no way to update an order item: ``price_at_purchase``
    is fixed when the row is written.
    """

    table = "orders"
    items_table = "order_items"

    async def create_order(self, row: dict[str, Any], store: DataStore | None = None) -> dict[str, Any]:
        return await (store or self.store).insert(self.table, row)

    async def add_item(self, row: dict[str, Any], store: DataStore | None = None) -> dict[str, Any]:
        return await (store or self.store).insert(self.items_table, row)

    async def delete_items(self, item_ids: list[str]) -> None:
        if item_ids:
            await self.store.delete(self.items_table, {"id": In(item_ids)})

    async def delete_order(self, order_id: str) -> None:
        await self.store.delete(self.items_table, {"order_id": order_id})
        await self.store.delete(self.table, {"id": order_id})

    async def get(self, order_id: str, user_id: str | None = None) -> dict[str, Any] | None:
        filters: dict[str, Any] = {"id": order_id}
        if user_id:
            filters["user_id"] = user_id
        return await self._first(filters)

    async def list(
        self,
        *,
        user_id: str | None = None,
        statuses: tuple[str, ...] | None = None,
        since: datetime | None = None,
        limit: int | None = None,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {}
        if user_id:
            filters["user_id"] = user_id
        if statuses:
            filters["status"] = In(statuses)
        if since:
            filters["created_at"] = Gte(since)
        return await self.store.query(
            self.table, filters or None, order_by="created_at", descending=descending, limit=limit
        )

    async def items_for(self, order_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {order_id: [] for order_id in order_ids}
        if not order_ids:
            return grouped
        for row in await self.store.query(self.items_table, {"order_id": In(order_ids)}):
            grouped.setdefault(str(row["order_id"]), []).append(row)
        return grouped

    async def items_for_product(self, product_id: str, order_ids: list[str]) -> list[dict[str, Any]]:
        if not order_ids:
            return []
        return await self.store.query(
            self.items_table, {"product_id": product_id, "order_id": In(order_ids)}
        )

    async def set_status(self, order_id: str, status: str) -> None:
        await self.store.update(self.table, {"id": order_id}, {"status": status, "updated_at": utc_now()})
