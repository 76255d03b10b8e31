"""Account profile and wishlist."""
from __future__ import annotations

from typing import Any

from storefront.core.exceptions import ConstraintViolation, DataStoreError
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.core.security import validator
from storefront.repositories.catalog_repository import ProductRepository
from storefront.repositories.user_repository import PROFILE_FIELDS, ProfileRepository, WishlistRepository


class ProfileService:
    def __init__(
        self,
        profiles: ProfileRepository,
        wishlists: WishlistRepository,
        products: ProductRepository,
    ) -> None:
        self._profiles = profiles
        self._wishlists = wishlists
        self._products = products

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        try:
            return await self._profiles.get(user_id)
        except DataStoreError as e:
            logger.error(f"Failed to load profile {user_id}: {e}")
            return None

    async def update_profile(self, user_id: str, data: dict[str, Any]) -> OperationResult[None]:
        patch = {key: validator.sanitize_text(data[key], 200) for key in PROFILE_FIELDS if key in data}
        if patch.get("phone") and not validator.validate_phone(patch["phone"]):
            return OperationResult.fail(
                "Could not update profile", "Enter a valid phone number.", {"phone": "Invalid phone number"}
            )
        try:
            await self._profiles.update(user_id, patch)
        except DataStoreError as e:
            logger.error(f"Failed to update profile {user_id}: {e}")
            return OperationResult.fail("Could not update profile", RETRY_HINT)
        return OperationResult.ok(message=UserMessage("Profile updated", "Your changes were saved."))

    async def get_wishlist(self, user_id: str) -> list[dict[str, Any]]:
        try:
            rows = await self._wishlists.for_user(user_id)
            products = await self._products.get_many(str(row["product_id"]) for row in rows)
        except DataStoreError as e:
            logger.error(f"Failed to load wishlist of {user_id}: {e}")
            return []
        return [{**row, "product": products.get(str(row["product_id"]))} for row in rows]

    async def add_to_wishlist(self, user_id: str, product_id: str) -> OperationResult[None]:
        try:
            await self._wishlists.add(user_id, product_id)
        except ConstraintViolation:
            return OperationResult.fail("Already saved", "Product already in wishlist")
        except DataStoreError as e:
            logger.error(f"Failed to add {product_id} to wishlist of {user_id}: {e}")
            return OperationResult.fail("Could not update wishlist", RETRY_HINT)
        return OperationResult.ok(message=UserMessage("Saved", "Added to your wishlist."))

    async def remove_from_wishlist(self, user_id: str, product_id: str) -> OperationResult[None]:
        try:
            await self._wishlists.remove(user_id, product_id)
        except DataStoreError as e:
            logger.error(f"Failed to remove {product_id} from wishlist of {user_id}: {e}")
            return OperationResult.fail("Could not update wishlist", RETRY_HINT)
        return OperationResult.ok()
