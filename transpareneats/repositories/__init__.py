from .product_repository import ProductRepository, PersistenceError, ProductNotFoundError

__all__ = ["ProductRepository", "PersistenceError", "ProductNotFoundError"]
