"""Catalog domain module for products and product categories"""

from .router import router, category_router

__all__ = [
    "router",
    "category_router",
]
