from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str
    confirm_password: str
    name: str


class AuthResponse(BaseModel):
    user: dict[str, Any] | None = None
    token: str | None = None
    guest_id: str


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    quantity: int


class CouponRequest(BaseModel):
    code: str = ""


class ShippingInfoModel(BaseModel):
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    phone: str | None = None


class CheckoutRequest(BaseModel):
    shipping: ShippingInfoModel
    payment_method: str
    shipping_method: str = "standard"
    coupon_code: str | None = None


class ReviewRequest(BaseModel):
    product_id: str
    rating: int
    title: str = ""
    comment: str = ""
    order_id: str | None = None


class ReviewUpdateRequest(BaseModel):
    rating: int | None = None
    title: str | None = None
    comment: str | None = None


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None


class WishlistRequest(BaseModel):
    product_id: str


class ProductRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    price: int | None = Field(default=None, description="Minor units")
    discount_price: int | None = Field(default=None, description="Minor units")
    category: str | None = None
    brand: str | None = None
    image_url: str | None = None
    in_stock: bool | None = None
    stock_quantity: int | None = None
    featured: bool | None = None


class BannerRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    link: str | None = None
    image_url: str | None = None
    active: bool | None = None


class CouponCreateRequest(BaseModel):
    code: str
    discount_type: str
    discount_value: Decimal
    active: bool = True


class CouponToggleRequest(BaseModel):
    active: bool


class OrderStatusRequest(BaseModel):
    status: str
