"""
Resolution pipeline.

CacheCheck -> StoreCheck -> NegativeCacheGate -> ExternalFallback -> Persist -> Respond

Everything after a fast-cache miss runs under the coalescer, so concurrent
requests for one barcode share a single store check, a single external
fallback sequence and a single write.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

import structlog

from transpareneats.cache.layered import LayeredCache
from transpareneats.core.clock import ensure_utc, utcnow
from transpareneats.db.models.product import Product
from transpareneats.models.product import (
    CacheTier,
    ProductSnapshot,
    ProductSource,
    ProductStatus,
    ResolutionOutcome,
    ResolutionResult,
)
from transpareneats.repositories.product_repository import PersistenceError
from transpareneats.services.resolver.barcode import InvalidBarcodeError, clean_barcode, validate_barcode
from transpareneats.services.resolver.coalescer import RequestCoalescer
from transpareneats.services.resolver.events import (
    IResolutionEventSink,
    ResolutionEvent,
    StructlogEventSink,
)
from transpareneats.services.resolver.normalizer import ProductNormalizer
from transpareneats.services.sources.interfaces import ISourceAdapter, LookupResult, LookupStatus

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "Product not found"
UNAVAILABLE_MESSAGE = "Product is no longer available"
FAILURE_MESSAGE = "Unable to resolve product right now, please try again later"

NOT_FOUND_SUGGESTIONS = [
    "Try scanning the barcode again",
    "Check if the barcode is clear and undamaged",
    "This might be a local/regional product not in our databases yet",
    "You can contribute this product so others can find it",
]

INVALID_BARCODE_SUGGESTIONS = [
    "Try scanning the barcode again",
    "Check if the barcode is clear and undamaged",
]


@dataclass
class _Resolution:
    """Outcome of the coalesced part of a resolution."""
    result: ResolutionResult
    adapter_errors: int = 0


class ResolutionPipeline:
    """
    Resolves a barcode through the layered cache and the ordered source adapters.

    `resolve` never raises: cache faults are misses, adapter faults move on to
    the next adapter, and store failures become a failed result.
    """

    def __init__(
        self,
        cache: LayeredCache,
        adapters: Sequence[ISourceAdapter],
        normalizer: ProductNormalizer,
        event_sink: Optional[IResolutionEventSink] = None,
        coalescer: Optional[RequestCoalescer] = None,
        adapter_timeout: float = 10.0,
        negative_cache_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow
    ):
        self.cache = cache
        self.repository = cache.repository
        self.adapters: List[ISourceAdapter] = list(adapters)
        self.normalizer = normalizer
        self.event_sink = event_sink or StructlogEventSink()
        self.coalescer = coalescer or RequestCoalescer()
        self.adapter_timeout = adapter_timeout
        self.negative_cache_window = negative_cache_window
        self.clock = clock

    async def resolve(self, barcode: str) -> ResolutionResult:
        """Resolve a barcode to product data."""
        try:
            barcode = clean_barcode(barcode)
        except InvalidBarcodeError as e:
            logger.info("Rejected invalid barcode", barcode=e.barcode, error=str(e))
            return ResolutionResult(
                success=False,
                barcode=e.barcode,
                message=str(e),
                suggestions=list(INVALID_BARCODE_SUGGESTIONS),
            )

        barcode_format = validate_barcode(barcode)["format_type"]

        # CacheCheck
        cached = await self.cache.get_cached_product(barcode)
        if cached is not None:
            result = self._hit(barcode, cached, ResolutionOutcome.HIT_CACHE, CacheTier.FAST)
            await self._emit(result, barcode_format=barcode_format)
            return result

        try:
            resolution, joined = await self.coalescer.run(barcode, lambda: self._resolve_uncached(barcode))
        except PersistenceError as e:
            logger.error("Resolution aborted by persistence failure", barcode=barcode, error=str(e))
            result = ResolutionResult(success=False, barcode=barcode, message=FAILURE_MESSAGE)
            await self._emit(result, barcode_format=barcode_format, error="persistence")
            return result
        except Exception as e:
            logger.exception("Unexpected resolution failure", barcode=barcode, error=str(e))
            result = ResolutionResult(success=False, barcode=barcode, message=FAILURE_MESSAGE)
            await self._emit(result, barcode_format=barcode_format, error=type(e).__name__)
            return result

        result = resolution.result.model_copy(deep=True)
        await self._emit(
            result,
            barcode_format=barcode_format,
            adapter_errors=resolution.adapter_errors,
            coalesced=joined,
        )
        return result

    async def _resolve_uncached(self, barcode: str) -> _Resolution:
        # Curation bumps the generation; mirrors of older reads are dropped
        generation = self.cache.generation(barcode)

        # StoreCheck
        record = await self.cache.get_stored_product(barcode)
        if record is not None:
            if record.status == ProductStatus.DELETED:
                return _Resolution(self._miss(barcode, UNAVAILABLE_MESSAGE, suggestions=[]))

            if record.source == ProductSource.CURATED or record.status == ProductStatus.ACTIVE:
                snapshot = await self.cache.mirror_product(record, generation=generation)
                return _Resolution(self._hit(barcode, snapshot, ResolutionOutcome.HIT_STORE, CacheTier.STORE))

            # NegativeCacheGate
            if record.status == ProductStatus.NOT_FOUND and self._within_retry_window(record):
                logger.info(
                    "Suppressed external lookup for recent not-found",
                    barcode=barcode,
                    last_searched=ensure_utc(record.last_searched).isoformat()
                )
                return _Resolution(self._miss(barcode))

        # ExternalFallback
        lookup, normalized, adapter_errors = await self._query_sources(barcode)
        if lookup is None:
            await self.repository.log_failed_search(barcode, searched_at=self.clock())
            return _Resolution(self._miss(barcode), adapter_errors=adapter_errors)

        # Persist
        product = await self.normalizer.persist(lookup.payload, lookup.provider, snapshot=normalized)
        snapshot = await self.cache.mirror_product(product, generation=generation)
        result = self._hit(barcode, snapshot, ResolutionOutcome.HIT_EXTERNAL, None)
        return _Resolution(result, adapter_errors=adapter_errors)

    async def _query_sources(
        self,
        barcode: str
    ) -> Tuple[Optional[LookupResult], Optional[ProductSnapshot], int]:
        """
        Adapters in priority order, stopping at the first usable Found.

        A Found payload that cannot be normalized counts as that adapter's
        TransientError and the next adapter is tried.
        """
        adapter_errors = 0
        for adapter in self.adapters:
            lookup = await self._lookup(adapter, barcode)
            if lookup.status == LookupStatus.FOUND:
                try:
                    return lookup, self.normalizer.normalize(lookup.payload, lookup.provider), adapter_errors
                except ValueError as e:
                    logger.warning(
                        "Source adapter returned an unusable payload",
                        provider=adapter.provider_name,
                        barcode=barcode,
                        error=str(e)
                    )
                    adapter_errors += 1
            elif lookup.status == LookupStatus.TRANSIENT_ERROR:
                adapter_errors += 1

        logger.info("No source found product", barcode=barcode, adapter_errors=adapter_errors)
        return None, None, adapter_errors

    async def _lookup(self, adapter: ISourceAdapter, barcode: str) -> LookupResult:
        """One bounded adapter call; any failure is a TransientError."""
        timeout = adapter.timeout or self.adapter_timeout
        try:
            return await asyncio.wait_for(adapter.lookup(barcode), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"Timed out after {timeout}s"
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"

        logger.warning(
            "Source adapter transient error",
            provider=adapter.provider_name,
            barcode=barcode,
            error=reason
        )
        return LookupResult.transient_error(adapter.provider_name, reason)

    def _within_retry_window(self, record: Product) -> bool:
        last_searched = ensure_utc(record.last_searched)
        if last_searched is None:
            return False
        return self.clock() - last_searched < self.negative_cache_window

    @staticmethod
    def _hit(
        barcode: str,
        snapshot: ProductSnapshot,
        outcome: ResolutionOutcome,
        cache_tier: Optional[CacheTier]
    ) -> ResolutionResult:
        return ResolutionResult(
            success=True,
            barcode=barcode,
            outcome=outcome,
            data=snapshot,
            from_cache=cache_tier is not None,
            cache_tier=cache_tier,
            source=snapshot.source.value if snapshot.source else None,
        )

    @staticmethod
    def _miss(
        barcode: str,
        message: str = NOT_FOUND_MESSAGE,
        suggestions: Optional[List[str]] = None
    ) -> ResolutionResult:
        return ResolutionResult(
            success=False,
            barcode=barcode,
            outcome=ResolutionOutcome.MISS_RECORDED,
            from_cache=False,
            message=message,
            suggestions=list(NOT_FOUND_SUGGESTIONS if suggestions is None else suggestions),
        )

    async def _emit(
        self,
        result: ResolutionResult,
        barcode_format: str = "unknown",
        adapter_errors: int = 0,
        coalesced: bool = False,
        error: Optional[str] = None
    ):
        event = ResolutionEvent(
            barcode=result.barcode,
            outcome=result.outcome,
            source=result.source,
            cache_tier=result.cache_tier,
            timestamp=self.clock(),
            success=result.success,
            adapter_errors=adapter_errors,
            coalesced=coalesced,
            barcode_format=barcode_format,
            error=error,
        )
        try:
            await self.event_sink.emit(event)
        except Exception as e:
            logger.warning("Resolution event sink failed", barcode=result.barcode, error=str(e))

    async def invalidate(self, barcode: str) -> bool:
        """Drop the fast-cache mirror of a product."""
        return await self.cache.invalidate_product(clean_barcode(barcode))

    async def close(self):
        """Close adapters and the fast cache back-end."""
        for adapter in self.adapters:
            await adapter.close()
        await self.cache.backend.close()
