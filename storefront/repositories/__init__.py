"""Repository layer over the external data store."""
from __future__ import annotations

from .base import BaseRepository
from .cart_store import CartStore, LocalCartStore, RemoteCartStore
from .catalog_repository import BannerRepository, ProductRepository
from .coupon_repository import CouponRepository
from .order_repository import OrderRepository
from .review_repository import ReviewRepository
from .user_repository import ProfileRepository, UserRepository, WishlistRepository

__all__ = [
    "BannerRepository",
    "BaseRepository",
    "CartStore",
    "CouponRepository",
    "LocalCartStore",
    "OrderRepository",
    "ProductRepository",
    "ProfileRepository",
    "RemoteCartStore",
    "ReviewRepository",
    "UserRepository",
    "WishlistRepository",
]
