from __future__ import annotations

import asyncio

import pytest

from storefront.core.results import RETRY_HINT
from storefront.domain.cart import CartLine
from storefront.services.identity import Session


@pytest.mark.asyncio
async def test_guest_add_update_remove(new_context) -> None:
    ctx = new_context()
    cart = ctx.cart

    added = await cart.add_to_cart("prod-a", 2)
    assert added.success
    assert added.value == CartLine("prod-a", 2)

    await cart.add_to_cart("prod-a", 1)
    assert await cart.get_cart_item_quantity("prod-a") == 3
    assert await cart.get_cart_item_count() == 3
    assert await cart.is_in_cart("prod-a")
    assert not await cart.is_in_cart("prod-b")

    assert (await cart.update_cart_item_quantity("prod-a", 5)).success
    assert await cart.get_cart_item_quantity("prod-a") == 5

    assert (await cart.remove_from_cart("prod-a")).success
    assert await cart.get_cart_items() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -5])
async def test_update_to_non_positive_quantity_removes_line(new_context, quantity) -> None:
    cart = new_context().cart
    await cart.add_to_cart("prod-a", 2)
    await cart.add_to_cart("prod-b", 1)

    result = await cart.update_cart_item_quantity("prod-a", quantity)

    assert result.success
    assert await cart.get_cart_items() == [CartLine("prod-b", 1)]


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, "abc"])
async def test_add_rejects_quantity_below_one(new_context, quantity) -> None:
    cart = new_context().cart
    result = await cart.add_to_cart("prod-a", quantity)

    assert not result.success
    assert "quantity" in result.errors
    assert await cart.get_cart_items() == []


@pytest.mark.asyncio
async def test_removing_missing_product_is_a_no_op(new_context) -> None:
    cart = new_context().cart
    assert (await cart.remove_from_cart("nope")).success
    assert (await cart.update_cart_item_quantity("nope", 3)).success
    assert (await cart.clear_cart()).success
    assert await cart.get_cart_items() == []


@pytest.mark.asyncio
async def test_guest_carts_are_per_session(new_context) -> None:
    first = new_context(Session(guest_id="guest-one-123"))
    second = new_context(Session(guest_id="guest-two-456"))
    await first.cart.add_to_cart("prod-a", 1)

    assert await second.cart.get_cart_items() == []
    again = new_context(Session(guest_id="guest-one-123"))
    assert await again.cart.get_cart_items() == [CartLine("prod-a", 1)]


@pytest.mark.asyncio
async def test_signed_in_user_uses_remote_rows(new_context, register, store) -> None:
    auth = await register()
    cart = new_context(Session(auth_token=auth.token)).cart

    await cart.add_to_cart("prod-b", 2)
    await cart.add_to_cart("prod-b", 1)

    rows = store.rows("cart")
    assert len(rows) == 1
    assert rows[0]["user_id"] == auth.user.id
    assert rows[0]["quantity"] == 3


@pytest.mark.asyncio
async def test_remote_read_failure_fails_open(new_context, register, store) -> None:
    auth = await register()
    cart = new_context(Session(auth_token=auth.token)).cart
    await cart.add_to_cart("prod-a", 1)

    store.fail("query", "cart")

    assert await cart.get_cart_items() == []
    assert await cart.get_cart_item_count() == 0


@pytest.mark.asyncio
async def test_remote_write_failure_returns_failed_result(new_context, register, store) -> None:
    auth = await register()
    cart = new_context(Session(auth_token=auth.token)).cart

    store.fail("insert", "cart")
    result = await cart.add_to_cart("prod-a", 1)

    assert not result.success
    assert result.message.description == RETRY_HINT
    store.heal()
    assert await cart.get_cart_items() == []


@pytest.mark.asyncio
async def test_mutations_publish_cart_count(new_context, container) -> None:
    ctx = new_context()
    owner = f"guest:{ctx.session.guest_id}"
    seen: list[int] = []

    async def handler(event) -> None:
        seen.append(event.count)

    await container.notifier.subscribe(owner, handler)
    await ctx.cart.add_to_cart("prod-a", 2)
    await ctx.cart.add_to_cart("prod-c", 1)
    await ctx.cart.remove_from_cart("prod-a")
    await ctx.cart.clear_cart()

    assert seen == [2, 3, 1, 0]
    assert container.notifier.last_known(owner) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("signed_in", [False, True])
async def test_clearing_twice_leaves_an_empty_cart(new_context, register, signed_in) -> None:
    session = Session(auth_token=(await register()).token) if signed_in else None
    cart = new_context(session).cart
    await cart.add_to_cart("prod-a", 2)
    await cart.add_to_cart("prod-b", 1)

    assert (await cart.clear_cart()).success
    assert (await cart.clear_cart()).success
    assert await cart.get_cart_items() == []
    assert await cart.get_cart_item_count() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("signed_in", [False, True])
async def test_concurrent_adds_of_one_product_sum_into_one_line(
    new_context, register, container, signed_in
) -> None:
    session = Session(auth_token=(await register()).token) if signed_in else None
    cart = new_context(session).cart

    results = await asyncio.gather(*(cart.add_to_cart("prod-a", quantity) for quantity in (1, 2, 3, 4)))

    assert all(result.success for result in results)
    assert await cart.get_cart_items() == [CartLine("prod-a", 10)]
    assert len(container.local_carts._locks) == 0
    assert len(container.remote_carts._locks) == 0


@pytest.mark.asyncio
async def test_remove_lines_keeps_other_products(new_context) -> None:
    cart = new_context().cart
    await cart.add_to_cart("prod-a", 1)
    await cart.add_to_cart("prod-b", 2)
    await cart.add_to_cart("prod-c", 3)

    assert (await cart.remove_lines(["prod-a", "prod-c", "not-in-cart"])).success
    assert await cart.get_cart_items() == [CartLine("prod-b", 2)]
