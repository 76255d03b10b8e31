from __future__ import annotations

import asyncio

import pytest

from storefront.core.stale import RequestGeneration
from storefront.domain.cart import CartLine
from storefront.services.cart_view import CartSummaryLoader, enrich_lines
from storefront.services.identity import Session

from conftest import PRODUCTS


def test_newer_token_supersedes_older() -> None:
    generations = RequestGeneration()
    first = generations.begin("cart")
    second = generations.begin("cart")

    assert not generations.is_current(first)
    assert generations.is_current(second)


def test_scopes_are_independent() -> None:
    generations = RequestGeneration()
    cart = generations.begin("cart")
    search = generations.begin("search")

    generations.invalidate("search")

    assert generations.is_current(cart)
    assert not generations.is_current(search)


def test_invalidate_all_scopes() -> None:
    generations = RequestGeneration()
    tokens = [generations.begin("cart"), generations.begin("checkout")]
    generations.invalidate()
    assert not any(generations.is_current(token) for token in tokens)



def test_settled_scope_is_forgotten() -> None:
    generations = RequestGeneration()
    older = generations.begin("cart")
    newer = generations.begin("cart")

    assert generations.settle(newer)
    assert not generations.settle(older)
    assert generations._latest == {}

class GatedProducts:
    """Product repository whose lookups wait until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def get_many(self, product_ids):
        ids = set(product_ids)
        await self.release.wait()
        return {p["id"]: p for p in PRODUCTS if p["id"] in ids}


class FailingProducts:
    async def get_many(self, product_ids):
        raise ConnectionError("catalog down")


@pytest.mark.asyncio
async def test_cancelled_load_returns_none(new_context, container) -> None:
    ctx = new_context()
    await ctx.cart.add_to_cart("prod-a", 1)
    products = GatedProducts()
    loader = CartSummaryLoader(ctx.cart, products, container.pricing)

    pending = asyncio.create_task(loader.load())
    await asyncio.sleep(0)
    loader.cancel("cart")
    products.release.set()

    assert await pending is None


@pytest.mark.asyncio
async def test_latest_load_wins(new_context, container) -> None:
    ctx = new_context()
    await ctx.cart.add_to_cart("prod-b", 1)
    products = GatedProducts()
    loader = CartSummaryLoader(ctx.cart, products, container.pricing)

    older = asyncio.create_task(loader.load())
    newer = asyncio.create_task(loader.load())
    await asyncio.sleep(0)
    products.release.set()

    assert await older is None
    summary = await newer
    assert summary.item_count == 1
    assert summary.breakdown.subtotal == 8000


@pytest.mark.asyncio
async def test_loads_from_separate_requests_share_one_session_guard(new_context, container) -> None:
    session = Session()
    first, second = new_context(session), new_context(session)
    other = new_context()
    await first.cart.add_to_cart("prod-a", 1)
    await other.cart.add_to_cart("prod-c", 1)
    products = GatedProducts()
    container.products = products

    older = asyncio.create_task(first.summary_loader().load())
    newer = asyncio.create_task(second.summary_loader().load())
    unrelated = asyncio.create_task(other.summary_loader().load())
    await asyncio.sleep(0)
    products.release.set()

    assert await older is None
    assert (await newer).item_count == 1
    assert (await unrelated).breakdown.subtotal == 2500
    assert container.summary_generations._latest == {}

@pytest.mark.asyncio
async def test_summary_skips_deleted_products(new_context) -> None:
    ctx = new_context()
    await ctx.cart.add_to_cart("prod-a", 2)
    await ctx.cart.add_to_cart("gone", 1)

    summary = await ctx.summary_loader().load()

    assert [line.product_id for line in summary.lines] == ["prod-a"]
    assert summary.missing_product_ids == ["gone"]
    assert summary.to_dict()["subtotal"] == 10000
    assert summary.to_dict()["shipping"] == 999


@pytest.mark.asyncio
async def test_enrich_lines_fails_open() -> None:
    assert await enrich_lines([CartLine("prod-a", 1)], FailingProducts()) == ([], [])
