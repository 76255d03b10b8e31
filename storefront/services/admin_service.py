"""Admin content management: products, banners, users and the dashboard."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from storefront.core.exceptions import DataStoreError
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.repositories.catalog_repository import BannerRepository, ProductRepository
from storefront.repositories.user_repository import ProfileRepository

from .order_service import OrderService


@dataclass(slots=True)
class AdminStats:
    products: int
    orders: int
    customers: int
    revenue: int


def validate_product(data: dict[str, Any], *, partial: bool = False) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not partial or "name" in data:
        if not str(data.get("name") or "").strip():
            errors["name"] = "Name is required"
    if not partial or "price" in data:
        price = data.get("price")
        if not isinstance(price, int) or isinstance(price, bool) or price < 0:
            errors["price"] = "Price must be a non-negative amount in cents"
    discount = data.get("discount_price")
    if discount is not None:
        if not isinstance(discount, int) or isinstance(discount, bool) or discount < 0:
            errors["discount_price"] = "Discount price must be a non-negative amount in cents"
        elif isinstance(data.get("price"), int) and discount >= data["price"]:
            errors["discount_price"] = "Discount price must be lower than the price"
    return errors


class AdminService:
    def __init__(
        self,
        products: ProductRepository,
        banners: BannerRepository,
        profiles: ProfileRepository,
        orders: OrderService,
    ) -> None:
        self._products = products
        self._banners = banners
        self._profiles = profiles
        self._orders = orders

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def create_product(self, data: dict[str, Any]) -> OperationResult[dict[str, Any]]:
        errors = validate_product(data)
        if errors:
            return OperationResult.fail("Could not save product", "Please fix the highlighted fields.", errors)
        try:
            row = await self._products.create(data)
        except DataStoreError as e:
            logger.error(f"Failed to create product: {e}")
            return OperationResult.fail("Could not save product", RETRY_HINT)
        return OperationResult.ok(row, UserMessage("Product created", str(data["name"])))

    async def update_product(self, product_id: str, data: dict[str, Any]) -> OperationResult[None]:
        errors = validate_product(data, partial=True)
        if errors:
            return OperationResult.fail("Could not save product", "Please fix the highlighted fields.", errors)
        try:
            if not await self._products.get(product_id):
                return OperationResult.fail("Product not found", "It may have been deleted.")
            await self._products.update(product_id, data)
        except DataStoreError as e:
            logger.error(f"Failed to update product {product_id}: {e}")
            return OperationResult.fail("Could not save product", RETRY_HINT)
        return OperationResult.ok(message=UserMessage("Product updated", "Your changes were saved."))

    async def delete_product(self, product_id: str) -> OperationResult[None]:
        try:
            await self._products.delete(product_id)
        except DataStoreError as e:
            logger.error(f"Failed to delete product {product_id}: {e}")
            return OperationResult.fail("Could not delete product", RETRY_HINT)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Banners
    # ------------------------------------------------------------------

    async def list_banners(self) -> list[dict[str, Any]]:
        try:
            return await self._banners.list()
        except DataStoreError as e:
            logger.error(f"Failed to load banners: {e}")
            return []

    async def create_banner(self, data: dict[str, Any]) -> OperationResult[dict[str, Any]]:
        if not str(data.get("title") or "").strip():
            return OperationResult.fail("Could not save banner", "Title is required.", {"title": "Required"})
        try:
            row = await self._banners.create(data)
        except DataStoreError as e:
            logger.error(f"Failed to create banner: {e}")
            return OperationResult.fail("Could not save banner", RETRY_HINT)
        return OperationResult.ok(row)

    async def update_banner(self, banner_id: str, data: dict[str, Any]) -> OperationResult[None]:
        try:
            await self._banners.update(banner_id, data)
        except DataStoreError as e:
            logger.error(f"Failed to update banner {banner_id}: {e}")
            return OperationResult.fail("Could not save banner", RETRY_HINT)
        return OperationResult.ok()

    async def delete_banner(self, banner_id: str) -> OperationResult[None]:
        try:
            await self._banners.delete(banner_id)
        except DataStoreError as e:
            logger.error(f"Failed to delete banner {banner_id}: {e}")
            return OperationResult.fail("Could not delete banner", RETRY_HINT)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Users & stats
    # ------------------------------------------------------------------

    async def list_users(self) -> list[dict[str, Any]]:
        try:
            return await self._profiles.list()
        except DataStoreError as e:
            logger.error(f"Failed to load users: {e}")
            return []

    async def stats(self) -> AdminStats:
        orders = await self._orders.list_all_orders()
        try:
            products = await self._products.list()
        except DataStoreError as e:
            logger.error(f"Failed to count products: {e}")
            products = []
        users = await self.list_users()
        return AdminStats(
            products=len(products),
            orders=len(orders),
            customers=len(users),
            revenue=sum(order.total_amount for order in orders if order.status != "cancelled"),
        )

    async def dashboard(self) -> dict[str, Any]:
        return await self._orders.dashboard()
