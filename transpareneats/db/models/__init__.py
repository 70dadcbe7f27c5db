"""
Database models for the product store.
"""

from .product import Product

__all__ = ["Product"]
