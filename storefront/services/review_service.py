"""Product reviews, verified purchases and the product rating aggregate."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from storefront.core.exceptions import DataStoreError
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.core.security import validator
from storefront.domain.order import OrderStatus
from storefront.repositories.catalog_repository import ProductRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.review_repository import ReviewRepository
from storefront.repositories.user_repository import ProfileRepository


def average_rating(ratings: list[int]) -> float:
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewService:
    def __init__(
        self,
        reviews: ReviewRepository,
        orders: OrderRepository,
        products: ProductRepository,
        profiles: ProfileRepository,
    ) -> None:
        self._reviews = reviews
        self._orders = orders
        self._products = products
        self._profiles = profiles

    async def _delivered_orders(self, user_id: str) -> list[dict[str, Any]]:
        return await self._orders.list(user_id=user_id, statuses=OrderStatus.REVIEWABLE)

    async def is_verified_purchase(self, user_id: str, product_id: str, order_id: str | None) -> bool:
        """True when ``order_id`` is the user's delivered/completed order containing the product."""
        if not order_id:
            return False
        order = await self._orders.get(order_id, user_id)
        if not order or OrderStatus.normalize(order.get("status")) not in OrderStatus.REVIEWABLE:
            return False
        return bool(await self._orders.items_for_product(product_id, [order_id]))

    async def refresh_product_rating(self, product_id: str) -> None:
        try:
            ratings = [int(row["rating"]) for row in await self._reviews.for_product(product_id)]
            await self._products.set_rating(product_id, average_rating(ratings), len(ratings))
        except DataStoreError as e:
            logger.error(f"Failed to refresh rating of product {product_id}: {e}")

    async def get_product_reviews(self, product_id: str) -> list[dict[str, Any]]:
        try:
            rows = await self._reviews.for_product(product_id)
            profiles = await self._profiles.get_many(str(row["user_id"]) for row in rows)
        except DataStoreError as e:
            logger.error(f"Failed to load reviews of product {product_id}: {e}")
            return []
        result = []
        for row in rows:
            profile = profiles.get(str(row["user_id"])) or {}
            result.append(
                {
                    **row,
                    "user": {
                        "email": profile.get("email"),
                        "first_name": profile.get("first_name"),
                        "last_name": profile.get("last_name"),
                    },
                }
            )
        return result

    async def get_user_reviews(self, user_id: str) -> list[dict[str, Any]]:
        try:
            rows = await self._reviews.for_user(user_id)
            products = await self._products.get_many(str(row["product_id"]) for row in rows)
        except DataStoreError as e:
            logger.error(f"Failed to load reviews of user {user_id}: {e}")
            return []
        return [
            {
                **row,
                "product": {
                    "name": (products.get(str(row["product_id"])) or {}).get("name"),
                    "image_url": (products.get(str(row["product_id"])) or {}).get("image_url"),
                },
            }
            for row in rows
        ]

    async def create_review(self, user_id: str, data: dict[str, Any]) -> OperationResult[dict[str, Any]]:
        product_id = str(data.get("product_id") or "")
        order_id = data.get("order_id") or None
        errors: dict[str, str] = {}
        if not product_id:
            errors["product_id"] = "Product is required"
        if not validator.validate_rating(data.get("rating")):
            errors["rating"] = "Rating must be between 1 and 5"
        if errors:
            return OperationResult.fail("Could not submit review", "Please fix the highlighted fields.", errors)

        try:
            if await self._reviews.find(user_id, product_id):
                return OperationResult.fail(
                    "Could not submit review", "You have already reviewed this product"
                )
            verified = await self.is_verified_purchase(user_id, product_id, order_id)
            row = await self._reviews.create(
                {
                    "user_id": user_id,
                    "product_id": product_id,
                    "order_id": order_id,
                    "rating": int(data["rating"]),
                    "title": validator.sanitize_text(data.get("title"), 200),
                    "comment": validator.sanitize_text(data.get("comment"), 2000),
                    "verified_purchase": verified,
                }
            )
        except DataStoreError as e:
            logger.error(f"Failed to create review by {user_id} for {product_id}: {e}")
            return OperationResult.fail("Could not submit review", RETRY_HINT)

        await self.refresh_product_rating(product_id)
        return OperationResult.ok(row, UserMessage("Review submitted", "Thank you for your feedback!"))

    async def update_review(self, review_id: str, user_id: str, data: dict[str, Any]) -> OperationResult[None]:
        patch: dict[str, Any] = {}
        if "rating" in data:
            if not validator.validate_rating(data["rating"]):
                return OperationResult.fail(
                    "Could not update review", "Rating must be between 1 and 5", {"rating": "Invalid rating"}
                )
            patch["rating"] = int(data["rating"])
        if "title" in data:
            patch["title"] = validator.sanitize_text(data["title"], 200)
        if "comment" in data:
            patch["comment"] = validator.sanitize_text(data["comment"], 2000)
        try:
            review = await self._reviews.get(review_id, user_id)
            if not review:
                return OperationResult.fail("Review not found", "It may have been deleted.")
            await self._reviews.update(review_id, user_id, patch)
        except DataStoreError as e:
            logger.error(f"Failed to update review {review_id}: {e}")
            return OperationResult.fail("Could not update review", RETRY_HINT)
        if "rating" in patch:
            await self.refresh_product_rating(str(review["product_id"]))
        return OperationResult.ok()

    async def delete_review(self, review_id: str, user_id: str) -> OperationResult[None]:
        try:
            review = await self._reviews.get(review_id, user_id)
            await self._reviews.delete(review_id, user_id)
        except DataStoreError as e:
            logger.error(f"Failed to delete review {review_id}: {e}")
            return OperationResult.fail("Could not delete review", RETRY_HINT)
        if review:
            await self.refresh_product_rating(str(review["product_id"]))
        return OperationResult.ok()

    async def get_reviewable_products(self, user_id: str) -> list[dict[str, Any]]:
        """Items of delivered/completed orders, each flagged with ``has_review``."""
        try:
            orders = {str(row["id"]): row for row in await self._delivered_orders(user_id)}
            items_by_order = await self._orders.items_for(list(orders))
            reviewed = {
                (str(row["product_id"]), str(row.get("order_id"))) for row in await self._reviews.for_user(user_id)
            }
            product_ids = {str(i["product_id"]) for items in items_by_order.values() for i in items}
            products = await self._products.get_many(product_ids)
        except DataStoreError as e:
            logger.error(f"Failed to load reviewable products for {user_id}: {e}")
            return []
        result = []
        for order_id, items in items_by_order.items():
            order = orders[order_id]
            for item in items:
                result.append(
                    {
                        **item,
                        "product": products.get(str(item["product_id"])),
                        "has_review": (str(item["product_id"]), order_id) in reviewed,
                        "order": {
                            "id": order_id,
                            "status": order.get("status"),
                            "created_at": order.get("created_at"),
                        },
                    }
                )
        return result

    async def can_review(self, user_id: str, product_id: str, order_id: str) -> bool:
        try:
            if not await self.is_verified_purchase(user_id, product_id, order_id):
                return False
            return not await self._reviews.find(user_id, product_id, order_id)
        except DataStoreError as e:
            logger.error(f"Failed to check review eligibility: {e}")
            return False

    async def reviewable_order_for(self, user_id: str, product_id: str) -> str | None:
        """First delivered/completed order containing the product and not yet reviewed."""
        try:
            order_ids = [str(row["id"]) for row in await self._delivered_orders(user_id)]
            items = await self._orders.items_for_product(product_id, order_ids)
            if not items:
                return None
            order_id = str(items[0]["order_id"])
            if await self._reviews.find(user_id, product_id, order_id):
                return None
            return order_id
        except DataStoreError as e:
            logger.error(f"Failed to find reviewable order: {e}")
            return None
