"""Coupon repository."""
from __future__ import annotations

from typing import Any

from storefront.domain.coupon import canonical_code
from storefront.infra.datastore import utc_now

from .base import BaseRepository


class CouponRepository(BaseRepository):
    table = "coupons"

    async def find_active(self, code: str) -> dict[str, Any] | None:
        return await self._first({"code": canonical_code(code), "active": True})

    async def list(self) -> list[dict[str, Any]]:
        return await self.store.query(self.table, order_by="created_at", descending=True)

    async def create(self, code: str, discount_type: str, discount_value: Any, active: bool = True) -> dict[str, Any]:
        return await self.store.insert(
            self.table,
            {
                "code": canonical_code(code),
                "discount_type": discount_type,
                "discount_value": discount_value,
                "active": bool(active),
            },
        )

    async def set_active(self, coupon_id: str, active: bool) -> None:
        await self.store.update(self.table, {"id": coupon_id}, {"active": bool(active), "updated_at": utc_now()})

    async def delete(self, coupon_id: str) -> None:
        await self.store.delete(self.table, {"id": coupon_id})
