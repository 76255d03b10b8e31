"""
Order reads for customers and the admin panel, and admin status updates.

Order lookups return ``None`` when nothing matches; that is an expected
outcome rendered as "not found", not an error.
"""
from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any

from storefront.core.exceptions import DataStoreError
from storefront.core.logging_config import logger
from storefront.core.money import coerce_amount
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.domain.order import Order, OrderStatus
from storefront.domain.order_fsm import validate_order_transition
from storefront.repositories.catalog_repository import ProductRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.user_repository import ProfileRepository

RECENT_ACTIVITY_LIMIT = 5
CHART_MONTHS = 6


def customer_name(profile: dict[str, Any] | None) -> str:
    if not profile:
        return "Guest"
    if profile.get("first_name"):
        return f"{profile['first_name']} {profile.get('last_name') or ''}".strip()
    return profile.get("email") or "Guest"


def month_start(now: datetime, months_back: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months_back
    return datetime(month_index // 12, month_index % 12 + 1, 1, tzinfo=timezone.utc)


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


class OrderService:
    def __init__(
        self,
        orders: OrderRepository,
        products: ProductRepository,
        profiles: ProfileRepository,
    ) -> None:
        self._orders = orders
        self._products = products
        self._profiles = profiles

    async def _hydrate(self, rows: list[dict[str, Any]]) -> list[Order]:
        order_ids = [str(row["id"]) for row in rows]
        items_by_order = await self._orders.items_for(order_ids)
        product_ids = {str(item["product_id"]) for items in items_by_order.values() for item in items}
        products = await self._products.get_many(product_ids)
        orders = []
        for row in rows:
            items = [
                {**item, "product": products.get(str(item["product_id"]))}
                for item in items_by_order.get(str(row["id"]), [])
            ]
            orders.append(Order.from_row(row, items))
        return orders

    async def get_user_orders(self, user_id: str) -> list[Order]:
        try:
            return await self._hydrate(await self._orders.list(user_id=user_id))
        except DataStoreError as e:
            logger.error(f"Failed to load orders for user {user_id}: {e}")
            return []

    async def get_order(self, order_id: str, user_id: str | None = None) -> Order | None:
        """Order with items, optionally scoped to its owner."""
        try:
            row = await self._orders.get(order_id, user_id)
            if not row:
                return None
            return (await self._hydrate([row]))[0]
        except DataStoreError as e:
            logger.error(f"Failed to load order {order_id}: {e}")
            return None

    async def list_all_orders(self) -> list[Order]:
        try:
            return await self._hydrate(await self._orders.list())
        except DataStoreError as e:
            logger.error(f"Failed to load orders: {e}")
            return []

    async def update_order_status(self, order_id: str, status: str) -> OperationResult[None]:
        try:
            row = await self._orders.get(order_id)
        except DataStoreError as e:
            logger.error(f"Failed to load order {order_id} for status update: {e}")
            return OperationResult.fail("Could not update order", RETRY_HINT)
        if not row:
            return OperationResult.fail("Order not found", "The order may have been removed.")

        target = OrderStatus.normalize(status)
        check = validate_order_transition(current_status=row.get("status"), target_status=target)
        if not check.allowed:
            return OperationResult.fail("Status not changed", check.reason or "Transition not allowed.")
        try:
            await self._orders.set_status(order_id, target)
        except DataStoreError as e:
            logger.error(f"Failed to update status of order {order_id}: {e}")
            return OperationResult.fail("Could not update order", RETRY_HINT)
        logger.info("Order %s status %s -> %s", order_id, row.get("status"), target)
        return OperationResult.ok(message=UserMessage("Order updated", f"Status is now {target}."))

    async def dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Recent activity plus monthly sales/order counts for the last six months."""
        now = now or datetime.now(timezone.utc)
        try:
            recent = await self._orders.list(limit=RECENT_ACTIVITY_LIMIT)
            profiles = await self._profiles.get_many(str(row["user_id"]) for row in recent)
            since = month_start(now, CHART_MONTHS - 1)
            chart_rows = await self._orders.list(since=since, descending=False)
        except DataStoreError as e:
            logger.error(f"Failed to load dashboard data: {e}")
            return {"recent_activity": [], "chart_data": []}

        recent_activity = [
            {
                "id": row["id"],
                "user": customer_name(profiles.get(str(row["user_id"]))),
                "action": "placed an order",
                "amount": coerce_amount(row.get("total_amount")),
                "status": row.get("status"),
                "date": _as_datetime(row.get("created_at")).date().isoformat()
                if row.get("created_at")
                else None,
            }
            for row in recent
        ]

        buckets: dict[tuple[int, int], dict[str, Any]] = {}
        for back in range(CHART_MONTHS - 1, -1, -1):
            start = month_start(now, back)
            buckets[(start.year, start.month)] = {
                "name": calendar.month_abbr[start.month],
                "sales": 0,
                "orders": 0,
            }
        for row in chart_rows:
            created = _as_datetime(row.get("created_at"))
            bucket = buckets.get((created.year, created.month)) if created else None
            if bucket is not None:
                bucket["sales"] += coerce_amount(row.get("total_amount"))
                bucket["orders"] += 1

        return {"recent_activity": recent_activity, "chart_data": list(buckets.values())}
