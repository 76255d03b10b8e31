"""Order domain types and status enums."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from storefront.core.money import coerce_amount


class OrderStatus:
    """Order lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, COMPLETED, CANCELLED)
    REVIEWABLE = (DELIVERED, COMPLETED)

    @classmethod
    def normalize(cls, status: str | None) -> str:
        raw = str(status or "").strip().lower()
        mapping = {
            "new": cls.PENDING,
            "canceled": cls.CANCELLED,
            "in_progress": cls.PROCESSING,
        }
        return mapping.get(raw, raw)


class ShippingMethod:
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"

    ALL = (STANDARD, EXPRESS, OVERNIGHT)

    @classmethod
    def normalize(cls, method: str | None) -> str:
        return str(method or cls.STANDARD).strip().lower()


class PaymentMethod:
    CREDIT_CARD = "credit-card"
    MIDTRANS = "midtrans"
    PAYPAL = "paypal"

    ALL = (CREDIT_CARD, MIDTRANS, PAYPAL)

    @classmethod
    def normalize(cls, method: str | None) -> str:
        value = str(method or "").strip().lower().replace("_", "-")
        return {"card": cls.CREDIT_CARD, "creditcard": cls.CREDIT_CARD}.get(value, value)


@dataclass(slots=True)
class ShippingInfo:
    email: str
    first_name: str
    last_name: str
    address: str
    city: str
    postal_code: str
    country: str
    state: str = ""
    phone: str | None = None

    REQUIRED_FIELDS = ("email", "first_name", "last_name", "address", "city", "postal_code", "country")

    def to_order_fields(self) -> dict[str, Any]:
        return {
            "shipping_email": self.email.strip(),
            "shipping_name": f"{self.first_name.strip()} {self.last_name.strip()}".strip(),
            "shipping_address": self.address.strip(),
            "shipping_city": self.city.strip(),
            "shipping_state": self.state.strip(),
            "shipping_postal_code": self.postal_code.strip(),
            "shipping_country": self.country.strip(),
            "shipping_phone": (self.phone or "").strip() or None,
        }


@dataclass
class OrderItem:
    product_id: str
    quantity: int
    price_at_purchase: int
    id: str | None = None
    order_id: str | None = None
    product: dict[str, Any] | None = None

    @property
    def line_total(self) -> int:
        return self.price_at_purchase * self.quantity

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> OrderItem:
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            order_id=str(row["order_id"]) if row.get("order_id") is not None else None,
            product_id=str(row.get("product_id")),
            quantity=coerce_amount(row.get("quantity"), 1),
            price_at_purchase=coerce_amount(row.get("price_at_purchase")),
            product=row.get("product"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_at_purchase": self.price_at_purchase,
            "product": self.product,
        }


@dataclass
class Order:
    id: str
    user_id: str
    status: str
    total_amount: int
    discount_amount: int = 0
    subtotal_amount: int = 0
    shipping_amount: int = 0
    tax_amount: int = 0
    payment_method: str = ""
    shipping_method: str = ShippingMethod.STANDARD
    coupon_code: str | None = None
    shipping: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None
    items: list[OrderItem] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any], items: list[dict[str, Any]] | None = None) -> Order:
        shipping = {key: value for key, value in row.items() if key.startswith("shipping_")}
        shipping.pop("shipping_method", None)
        shipping.pop("shipping_amount", None)
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id")),
            status=OrderStatus.normalize(row.get("status")),
            total_amount=coerce_amount(row.get("total_amount")),
            discount_amount=coerce_amount(row.get("discount_amount")),
            subtotal_amount=coerce_amount(row.get("subtotal_amount")),
            shipping_amount=coerce_amount(row.get("shipping_amount")),
            tax_amount=coerce_amount(row.get("tax_amount")),
            payment_method=str(row.get("payment_method") or ""),
            shipping_method=ShippingMethod.normalize(row.get("shipping_method")),
            coupon_code=row.get("coupon_code"),
            shipping=shipping,
            created_at=_iso(row.get("created_at")),
            updated_at=_iso(row.get("updated_at")),
            items=[OrderItem.from_row(item) for item in (items or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "total_amount": self.total_amount,
            "discount_amount": self.discount_amount,
            "subtotal_amount": self.subtotal_amount,
            "shipping_amount": self.shipping_amount,
            "tax_amount": self.tax_amount,
            "payment_method": self.payment_method,
            "shipping_method": self.shipping_method,
            "coupon_code": self.coupon_code,
            **self.shipping,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "order_items": [item.to_dict() for item in self.items],
        }


def _iso(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
