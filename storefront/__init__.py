"""Storefront cart, pricing and checkout core."""

__version__ = "1.0.0"
