"""Coupon entity."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from storefront.core.money import to_decimal


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def canonical_code(code: str | None) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True, slots=True)
class Coupon:
    """Percentage values are percent points; fixed values are minor units."""

    code: str
    discount_type: DiscountType
    discount_value: Decimal
    active: bool = True
    id: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Coupon:
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            code=canonical_code(row.get("code")),
            discount_type=DiscountType(str(row.get("discount_type", "percentage")).lower()),
            discount_value=to_decimal(row.get("discount_value")),
            active=bool(row.get("active", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "discount_type": self.discount_type.value,
            "discount_value": str(self.discount_value),
            "active": self.active,
        }
