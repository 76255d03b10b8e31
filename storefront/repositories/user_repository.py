"""User, profile and wishlist repositories."""
from __future__ import annotations

from typing import Any, Iterable

from storefront.infra.datastore import In, utc_now

from .base import BaseRepository

PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "city", "postal_code", "country")


class UserRepository(BaseRepository):
    """Credential records owned by the auth provider."""

    table = "users"

    async def get(self, user_id: str) -> dict[str, Any] | None:
        return await self._first({"id": user_id})

    async def get_by_email(self, email: str) -> dict[str, Any] | None:
        return await self._first({"email": email.strip().lower()})

    async def create(self, email: str, password_hash: str, name: str | None = None) -> dict[str, Any]:
        return await self.store.insert(
            self.table,
            {"email": email.strip().lower(), "password_hash": password_hash, "name": name},
        )


class ProfileRepository(BaseRepository):
    table = "profiles"

    async def get(self, user_id: str) -> dict[str, Any] | None:
        return await self._first({"id": user_id})

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        return {str(row["id"]): row for row in await self.store.query(self.table, {"id": In(ids)})}

    async def list(self) -> list[dict[str, Any]]:
        return await self.store.query(self.table, order_by="created_at", descending=True)

    async def create(self, user_id: str, email: str, first_name: str = "", last_name: str = "") -> dict[str, Any]:
        return await self.store.insert(
            self.table,
            {"id": user_id, "email": email, "first_name": first_name, "last_name": last_name},
        )

    async def update(self, user_id: str, data: dict[str, Any]) -> None:
        patch = {k: data[k] for k in PROFILE_FIELDS if k in data}
        patch["updated_at"] = utc_now()
        await self.store.update(self.table, {"id": user_id}, patch)


class WishlistRepository(BaseRepository):
    table = "wishlists"

    async def for_user(self, user_id: str) -> list[dict[str, Any]]:
        return await self.store.query(self.table, {"user_id": user_id}, order_by="created_at", descending=True)

    async def add(self, user_id: str, product_id: str) -> dict[str, Any]:
        return await self.store.insert(self.table, {"user_id": user_id, "product_id": product_id})

    async def remove(self, user_id: str, product_id: str) -> None:
        await self.store.delete(self.table, {"user_id": user_id, "product_id": product_id})
