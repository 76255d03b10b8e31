from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from storefront.core.exceptions import ConstraintViolation, DataStoreError
from storefront.infra.datastore import Gte, In, InMemoryDataStore


@pytest.mark.asyncio
async def test_insert_assigns_id_and_timestamps() -> None:
    store = InMemoryDataStore()
    row = await store.insert("banners", {"title": "Hi"})

    assert row["id"]
    assert isinstance(row["created_at"], datetime)
    assert (await store.query("banners", {"id": row["id"]}))[0]["title"] == "Hi"


@pytest.mark.asyncio
async def test_unique_keys_are_enforced() -> None:
    store = InMemoryDataStore()
    await store.insert("cart", {"user_id": "u1", "product_id": "a", "quantity": 1})

    with pytest.raises(ConstraintViolation):
        await store.insert("cart", {"user_id": "u1", "product_id": "a", "quantity": 2})
    await store.insert("cart", {"user_id": "u2", "product_id": "a", "quantity": 2})


@pytest.mark.asyncio
async def test_filters_order_and_limit() -> None:
    store = InMemoryDataStore()
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i, status in enumerate(["pending", "shipped", "cancelled", "pending"]):
        await store.insert("orders", {"status": status, "total_amount": i, "created_at": base + timedelta(days=i)})

    rows = await store.query("orders", {"status": In(["pending", "shipped"])}, order_by="total_amount", descending=True)
    assert [r["total_amount"] for r in rows] == [3, 1, 0]

    recent = await store.query("orders", {"created_at": Gte(base + timedelta(days=2))})
    assert sorted(r["total_amount"] for r in recent) == [2, 3]

    assert len(await store.query("orders", limit=2)) == 2


@pytest.mark.asyncio
async def test_unfiltered_writes_are_refused() -> None:
    store = InMemoryDataStore()
    with pytest.raises(DataStoreError):
        await store.delete("orders", {})
    with pytest.raises(DataStoreError):
        await store.update("orders", {}, {"status": "x"})


@pytest.mark.asyncio
async def test_atomic_rolls_back_on_error() -> None:
    store = InMemoryDataStore()
    await store.insert("banners", {"title": "kept"})

    with pytest.raises(RuntimeError):
        async with store.atomic() as tx:
            await tx.insert("banners", {"title": "dropped"})
            raise RuntimeError("boom")

    assert [row["title"] for row in store.rows("banners")] == ["kept"]
