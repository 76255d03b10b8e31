from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storefront.domain.order_fsm import validate_order_transition
from storefront.services.order_service import customer_name, month_start


async def _order(store, user_id: str, *, status: str = "pending", total: int = 1000, created_at=None) -> str:
    row = {"user_id": user_id, "status": status, "total_amount": total}
    if created_at is not None:
        row["created_at"] = created_at
    order = await store.insert("orders", row)
    await store.insert(
        "order_items", {"order_id": order["id"], "product_id": "prod-a", "quantity": 1, "price_at_purchase": total}
    )
    return order["id"]


def test_month_start_crosses_year_boundary() -> None:
    now = datetime(2024, 2, 14, tzinfo=timezone.utc)
    assert month_start(now, 0) == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert month_start(now, 2) == datetime(2023, 12, 1, tzinfo=timezone.utc)
    assert month_start(now, 14) == datetime(2022, 12, 1, tzinfo=timezone.utc)


def test_customer_name_fallbacks() -> None:
    assert customer_name(None) == "Guest"
    assert customer_name({"first_name": "Ana", "last_name": "Lopez"}) == "Ana Lopez"
    assert customer_name({"first_name": "", "email": "x@example.com"}) == "x@example.com"


@pytest.mark.asyncio
async def test_user_orders_carry_items_and_products(container, register, store) -> None:
    auth = await register()
    order_id = await _order(store, auth.user.id, total=5000)
    await _order(store, "someone-else")

    orders = await container.orders.get_user_orders(auth.user.id)

    assert [order.id for order in orders] == [order_id]
    assert orders[0].items[0].product["name"] == "Canvas Tote"
    assert orders[0].items[0].price_at_purchase == 5000


@pytest.mark.asyncio
async def test_missing_or_foreign_order_is_none(container, register, store) -> None:
    auth = await register()
    foreign = await _order(store, "someone-else")

    assert await container.orders.get_order("does-not-exist") is None
    assert await container.orders.get_order(foreign, auth.user.id) is None
    assert (await container.orders.get_order(foreign)).user_id == "someone-else"


@pytest.mark.asyncio
async def test_status_updates_follow_transition_rules(container, store) -> None:
    order_id = await _order(store, "u1")

    assert (await container.orders.update_order_status(order_id, "confirmed")).success
    rejected = await container.orders.update_order_status(order_id, "delivered")
    assert not rejected.success
    assert rejected.message.title == "Status not changed"
    assert (await container.orders.update_order_status(order_id, "canceled")).success
    assert (await container.orders.get_order(order_id)).status == "cancelled"
    assert not (await container.orders.update_order_status(order_id, "processing")).success


@pytest.mark.asyncio
async def test_unknown_order_status_update(container) -> None:
    result = await container.orders.update_order_status("missing", "confirmed")
    assert result.message.title == "Order not found"


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        ("pending", "confirmed", True),
        ("pending", "shipped", False),
        ("shipped", "delivered", True),
        ("delivered", "completed", True),
        ("completed", "pending", False),
        ("cancelled", "confirmed", False),
        ("pending", "pending", True),
        ("pending", "lost", False),
        (None, "pending", True),
    ],
)
def test_transition_matrix(current, target, allowed) -> None:
    assert validate_order_transition(current_status=current, target_status=target).allowed is allowed


@pytest.mark.asyncio
async def test_dashboard_buckets_last_six_months(container, register, store) -> None:
    auth = await register()
    now = datetime(2024, 3, 20, tzinfo=timezone.utc)
    await _order(store, auth.user.id, total=1500, created_at=datetime(2024, 3, 2, tzinfo=timezone.utc))
    await _order(store, auth.user.id, total=500, created_at=datetime(2024, 3, 5, tzinfo=timezone.utc))
    await _order(store, auth.user.id, total=700, created_at=datetime(2023, 10, 9, tzinfo=timezone.utc))
    await _order(store, auth.user.id, total=900, created_at=datetime(2023, 8, 1, tzinfo=timezone.utc))

    data = await container.orders.dashboard(now=now)

    assert [bucket["name"] for bucket in data["chart_data"]] == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert data["chart_data"][0] == {"name": "Oct", "sales": 700, "orders": 1}
    assert data["chart_data"][-1] == {"name": "Mar", "sales": 2000, "orders": 2}
    assert len(data["recent_activity"]) == 4
    assert data["recent_activity"][0]["user"] == "Ana Lopez"
    assert data["recent_activity"][0]["action"] == "placed an order"
    assert data["recent_activity"][0]["amount"] == 500


@pytest.mark.asyncio
async def test_dashboard_degrades_when_store_fails(container, store) -> None:
    store.fail("query", "orders")
    assert await container.orders.dashboard() == {"recent_activity": [], "chart_data": []}
