"""
Layered product cache.
Fast tier: a TTL key/value back-end (Redis or in-memory).
Durable tier: the products table behind ProductRepository.

Fast tier faults are logged and reported as misses; they never abort a
resolution.
"""

from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from transpareneats.cache.backends import ICacheBackend, CacheBackendError
from transpareneats.db.models.product import Product
from transpareneats.models.product import ProductSnapshot
from transpareneats.repositories.product_repository import ProductRepository

logger = structlog.get_logger(__name__)


class CacheKeys:
    """Cache key generators."""

    @staticmethod
    def product(barcode: str) -> str:
        return f"product:{barcode}"


class CacheTTL:
    """Cache TTL constants (in seconds)."""

    PRODUCT = 3600  # 1 hour


class LayeredCache:
    """Fast cache in front of the durable product store."""

    def __init__(
        self,
        backend: ICacheBackend,
        repository: ProductRepository,
        default_ttl: int = CacheTTL.PRODUCT
    ):
        self.backend = backend
        self.repository = repository
        self.default_ttl = default_ttl
        self.fault_count = 0
        self._generations: Dict[str, int] = {}

    # Fast tier
    async def get(self, key: str) -> Optional[Any]:
        """Get a value; expired, missing and unreachable entries are all misses."""
        try:
            return await self.backend.get(key)
        except CacheBackendError as e:
            self._record_fault("get", key, e)
            return None

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value with the default TTL unless overridden."""
        try:
            await self.backend.set(key, value, ttl or self.default_ttl)
            return True
        except CacheBackendError as e:
            self._record_fault("put", key, e)
            return False

    async def invalidate(self, key: str) -> bool:
        """Drop a single entry."""
        try:
            await self.backend.delete(key)
            return True
        except CacheBackendError as e:
            self._record_fault("invalidate", key, e)
            return False

    async def clear(self) -> bool:
        """Drop every entry."""
        try:
            await self.backend.clear()
            logger.info("Cache cleared", backend=self.backend.backend_name)
            return True
        except CacheBackendError as e:
            self._record_fault("clear", "*", e)
            return False

    # Product helpers
    async def get_cached_product(self, barcode: str) -> Optional[ProductSnapshot]:
        """Read the fast-tier mirror of a product."""
        key = CacheKeys.product(barcode)
        payload = await self.get(key)
        if payload is None:
            return None

        try:
            return ProductSnapshot.model_validate(payload)
        except ValidationError as e:
            logger.warning("Discarding malformed cache entry", key=key, error=str(e))
            await self.invalidate(key)
            return None

    async def get_stored_product(self, barcode: str) -> Optional[Product]:
        """Read the durable record; PersistenceError propagates."""
        return await self.repository.find_by_barcode(barcode)

    def generation(self, barcode: str) -> int:
        """Invalidation counter of a product; read it before the durable read."""
        return self._generations.get(barcode, 0)

    async def mirror_product(
        self,
        product: Product,
        ttl: Optional[int] = None,
        generation: Optional[int] = None
    ) -> ProductSnapshot:
        """
        Refresh the fast-tier mirror from a durable record.

        When `generation` is given and the product was invalidated since, the
        record is stale and the mirror is left empty.
        """
        snapshot = ProductSnapshot.model_validate(product)
        if generation is not None and generation != self.generation(snapshot.barcode):
            logger.info("Skipping stale cache mirror", barcode=snapshot.barcode)
            return snapshot

        await self.put(CacheKeys.product(snapshot.barcode), snapshot.model_dump(mode="json"), ttl)
        return snapshot

    async def invalidate_product(self, barcode: str) -> bool:
        self._generations[barcode] = self.generation(barcode) + 1
        return await self.invalidate(CacheKeys.product(barcode))

    def _record_fault(self, operation: str, key: str, error: CacheBackendError):
        self.fault_count += 1
        logger.warning(
            "Cache backend error",
            operation=operation,
            key=key,
            backend=self.backend.backend_name,
            error=str(error)
        )
