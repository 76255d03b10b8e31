from __future__ import annotations

import pytest

from storefront.services.review_service import average_rating


async def _delivered_order(store, user_id: str, product_id: str, status: str = "delivered") -> str:
    order = await store.insert("orders", {"user_id": user_id, "status": status, "total_amount": 5000})
    await store.insert(
        "order_items",
        {"order_id": order["id"], "product_id": product_id, "quantity": 1, "price_at_purchase": 5000},
    )
    return order["id"]


@pytest.mark.parametrize(
    "ratings, expected",
    [([], 0.0), ([4, 5], 4.5), ([4, 4, 5], 4.3), ([5, 4, 4, 4], 4.3), ([1, 2], 1.5), ([3, 3, 4, 4, 4, 5], 3.8)],
)
def test_average_rating_rounds_to_one_decimal(ratings, expected) -> None:
    assert average_rating(ratings) == expected


@pytest.mark.asyncio
async def test_review_of_delivered_order_is_verified(container, register, store) -> None:
    auth = await register()
    order_id = await _delivered_order(store, auth.user.id, "prod-a")

    result = await container.reviews.create_review(
        auth.user.id, {"product_id": "prod-a", "order_id": order_id, "rating": 5, "comment": "Great <b>bag</b>"}
    )

    assert result.success
    assert result.value["verified_purchase"] is True
    assert result.value["comment"] == "Great &lt;b&gt;bag&lt;/b&gt;"


@pytest.mark.asyncio
async def test_review_without_matching_order_is_not_verified(container, register, store) -> None:
    auth = await register()
    pending_id = await _delivered_order(store, auth.user.id, "prod-a", status="pending")

    result = await container.reviews.create_review(
        auth.user.id, {"product_id": "prod-a", "order_id": pending_id, "rating": 4}
    )

    assert result.success
    assert result.value["verified_purchase"] is False


@pytest.mark.asyncio
async def test_second_review_of_same_product_is_rejected(container, register) -> None:
    auth = await register()
    await container.reviews.create_review(auth.user.id, {"product_id": "prod-b", "rating": 3})

    again = await container.reviews.create_review(auth.user.id, {"product_id": "prod-b", "rating": 5})

    assert not again.success
    assert again.message.description == "You have already reviewed this product"


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6, "x", None])
async def test_rating_must_be_one_to_five(container, register, rating) -> None:
    auth = await register()
    result = await container.reviews.create_review(auth.user.id, {"product_id": "prod-a", "rating": rating})
    assert result.errors == {"rating": "Rating must be between 1 and 5"}


@pytest.mark.asyncio
async def test_product_rating_follows_reviews(container, register, store) -> None:
    ana = await register()
    ben = await register("ben@example.com", "secret123", "Ben Ode")
    cai = await register("cai@example.com", "secret123", "Cai Wu")

    await container.reviews.create_review(ana.user.id, {"product_id": "prod-c", "rating": 4})
    second = await container.reviews.create_review(ben.user.id, {"product_id": "prod-c", "rating": 5})
    product = await container.products.get("prod-c")
    assert product["rating"] == 4.5
    assert product["reviews_count"] == 2

    await container.reviews.create_review(cai.user.id, {"product_id": "prod-c", "rating": 4})
    assert (await container.products.get("prod-c"))["rating"] == 4.3

    await container.reviews.delete_review(second.value["id"], ben.user.id)
    product = await container.products.get("prod-c")
    assert product["rating"] == 4.0
    assert product["reviews_count"] == 2


@pytest.mark.asyncio
async def test_update_review_only_touches_own_review(container, register) -> None:
    ana = await register()
    ben = await register("ben@example.com", "secret123", "Ben Ode")
    created = await container.reviews.create_review(ana.user.id, {"product_id": "prod-a", "rating": 2})

    denied = await container.reviews.update_review(created.value["id"], ben.user.id, {"rating": 5})
    assert not denied.success

    assert (await container.reviews.update_review(created.value["id"], ana.user.id, {"rating": 5})).success
    assert (await container.products.get("prod-a"))["rating"] == 5.0


@pytest.mark.asyncio
async def test_product_reviews_include_author(container, register) -> None:
    auth = await register()
    await container.reviews.create_review(auth.user.id, {"product_id": "prod-a", "rating": 5, "title": "Nice"})

    reviews = await container.reviews.get_product_reviews("prod-a")

    assert len(reviews) == 1
    assert reviews[0]["user"] == {"email": "ana@example.com", "first_name": "Ana", "last_name": "Lopez"}


@pytest.mark.asyncio
async def test_reviewable_products_flag_reviewed_items(container, register, store) -> None:
    auth = await register()
    order_id = await _delivered_order(store, auth.user.id, "prod-a")
    await store.insert(
        "order_items", {"order_id": order_id, "product_id": "prod-b", "quantity": 1, "price_at_purchase": 8000}
    )
    await container.reviews.create_review(
        auth.user.id, {"product_id": "prod-a", "order_id": order_id, "rating": 5}
    )

    items = {item["product_id"]: item for item in await container.reviews.get_reviewable_products(auth.user.id)}

    assert items["prod-a"]["has_review"] is True
    assert items["prod-b"]["has_review"] is False
    assert items["prod-b"]["product"]["name"] == "Leather Wallet"
    assert await container.reviews.can_review(auth.user.id, "prod-b", order_id)
    assert not await container.reviews.can_review(auth.user.id, "prod-a", order_id)
    assert await container.reviews.reviewable_order_for(auth.user.id, "prod-b") == order_id
    assert await container.reviews.reviewable_order_for(auth.user.id, "prod-c") is None
