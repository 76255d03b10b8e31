"""Cart line entities and the guest/user merge rule."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


@dataclass
class CartLine:
    """Single product line; at most one per product in a cart."""

    product_id: str
    quantity: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.product_id), "quantity": int(self.quantity)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartLine:
        product_id = data.get("id", data.get("product_id"))
        if product_id is None or str(product_id) == "":
            raise ValueError("cart line without product id")
        quantity = int(data.get("quantity", 0))
        if quantity < 1:
            raise ValueError(f"cart line {product_id} has quantity {quantity}")
        return cls(product_id=str(product_id), quantity=quantity)


@dataclass(frozen=True)
class EnrichedCartLine:
    """Cart line joined with the product snapshot read at display time."""

    product_id: str
    quantity: int
    name: str
    price: int
    discount_price: int | None = None
    image_url: str | None = None

    @property
    def unit_price(self) -> int:
        return self.discount_price if self.discount_price is not None else self.price

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.product_id,
            "quantity": self.quantity,
            "name": self.name,
            "price": self.price,
            "discount_price": self.discount_price,
            "image_url": self.image_url,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


def normalize_lines(lines: Iterable[CartLine]) -> list[CartLine]:
    """Collapse duplicate product ids by summing, preserving first-seen order."""
    merged: dict[str, CartLine] = {}
    for line in lines:
        if line.quantity < 1:
            continue
        existing = merged.get(line.product_id)
        if existing:
            existing.quantity += line.quantity
        else:
            merged[line.product_id] = CartLine(line.product_id, int(line.quantity))
    return list(merged.values())


def merge_lines(guest: Iterable[CartLine], user: Iterable[CartLine]) -> list[CartLine]:
    """Guest quantities are added onto the user's lines; unknown products are appended."""
    return normalize_lines([*user, *guest])
