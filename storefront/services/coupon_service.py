"""Coupon lookup for the pricing engine plus the admin coupon paths."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from storefront.core.exceptions import ConstraintViolation, DataStoreError
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.domain.coupon import Coupon, DiscountType, canonical_code
from storefront.infra.datastore import DataStore
from storefront.repositories.coupon_repository import CouponRepository


class CouponStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CouponLookup:
    status: CouponStatus
    coupon: Coupon | None = None
    message: UserMessage | None = None

    @property
    def found(self) -> bool:
        return self.status is CouponStatus.FOUND


class CouponResolver:
    """Resolves user-entered codes against active coupons.

    "Not found" is an expected outcome, reported apart from a store failure.
    There is no stacking: callers keep one coupon slot and a newly applied
    coupon replaces the previous one.
    """

    def __init__(self, store: DataStore, repo: CouponRepository | None = None) -> None:
        self._repo = repo or CouponRepository(store)

    async def apply_coupon(self, code: str | None) -> CouponLookup:
        canonical = canonical_code(code)
        if not canonical:
            return CouponLookup(
                CouponStatus.INVALID, message=UserMessage("Invalid coupon", "Enter a coupon code.")
            )
        try:
            row = await self._repo.find_active(canonical)
        except DataStoreError as e:
            logger.error(f"Coupon lookup failed for {canonical}: {e}")
            return CouponLookup(
                CouponStatus.ERROR, message=UserMessage("Could not validate coupon", RETRY_HINT)
            )
        if not row:
            return CouponLookup(
                CouponStatus.NOT_FOUND,
                message=UserMessage("Coupon not found", "Check the code or try a different one."),
            )
        try:
            coupon = Coupon.from_row(row)
        except (KeyError, ValueError) as e:
            logger.warning("Coupon %s has malformed data: %s", canonical, e)
            return CouponLookup(
                CouponStatus.INVALID,
                message=UserMessage("Invalid coupon", "This coupon cannot be applied."),
            )
        description = (
            f"{coupon.discount_value.normalize():f}% off your order"
            if coupon.discount_type is DiscountType.PERCENTAGE
            else "Discount applied to your order"
        )
        return CouponLookup(CouponStatus.FOUND, coupon, UserMessage("Coupon applied", description))

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    @staticmethod
    def validate_coupon(code: Any, discount_type: Any, discount_value: Any) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not canonical_code(code):
            errors["code"] = "Code is required"
        try:
            kind = DiscountType(str(discount_type).lower())
        except ValueError:
            errors["discount_type"] = "Discount type must be percentage or fixed"
            kind = None
        try:
            value = Decimal(str(discount_value))
        except (InvalidOperation, ValueError):
            errors["discount_value"] = "Discount value must be a number"
            return errors
        if kind is DiscountType.PERCENTAGE and not (0 < value <= 100):
            errors["discount_value"] = "Percentage must be between 0 and 100"
        elif kind is DiscountType.FIXED and value <= 0:
            errors["discount_value"] = "Fixed discount must be positive"
        return errors

    async def list_coupons(self) -> list[Coupon]:
        try:
            return [Coupon.from_row(row) for row in await self._repo.list()]
        except DataStoreError as e:
            logger.error(f"Failed to list coupons: {e}")
            return []

    async def create_coupon(
        self, code: str, discount_type: str, discount_value: Any, active: bool = True
    ) -> OperationResult[Coupon]:
        errors = self.validate_coupon(code, discount_type, discount_value)
        if errors:
            return OperationResult.fail("Could not create coupon", "Please fix the highlighted fields.", errors)
        value = Decimal(str(discount_value))
        try:
            row = await self._repo.create(code, str(discount_type).lower(), value, active)
        except ConstraintViolation:
            return OperationResult.fail(
                "Could not create coupon", "A coupon with this code already exists.", {"code": "Duplicate code"}
            )
        except DataStoreError as e:
            logger.error(f"Failed to create coupon {code}: {e}")
            return OperationResult.fail("Could not create coupon", RETRY_HINT)
        return OperationResult.ok(Coupon.from_row(row), UserMessage("Coupon created", canonical_code(code)))

    async def set_active(self, coupon_id: str, active: bool) -> OperationResult[None]:
        try:
            await self._repo.set_active(coupon_id, active)
        except DataStoreError as e:
            logger.error(f"Failed to toggle coupon {coupon_id}: {e}")
            return OperationResult.fail("Could not update coupon", RETRY_HINT)
        return OperationResult.ok()

    async def delete_coupon(self, coupon_id: str) -> OperationResult[None]:
        try:
            await self._repo.delete(coupon_id)
        except DataStoreError as e:
            logger.error(f"Failed to delete coupon {coupon_id}: {e}")
            return OperationResult.fail("Could not delete coupon", RETRY_HINT)
        return OperationResult.ok()
