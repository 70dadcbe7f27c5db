"""
Unit tests for barcode validation, the request coalescer and resolver wiring.
"""

import asyncio

import pytest
from unittest.mock import patch

from transpareneats.models.product import ResolutionOutcome
from transpareneats.services.resolver import (
    InvalidBarcodeError,
    RequestCoalescer,
    StructlogEventSink,
    build_resolver,
    clean_barcode,
    resolver_lifespan,
    validate_barcode,
)
from transpareneats.services.resolver.events import ResolutionEvent


class TestBarcodeValidation:
    """Test cleaning and GTIN format detection."""

    def test_clean_strips_whitespace(self):
        assert clean_barcode(" 3017 6204 22003 ") == "3017620422003"

    @pytest.mark.parametrize("barcode", ["", "  ", "12a45", "978-0-306", None, 12345])
    def test_clean_rejects(self, barcode):
        with pytest.raises(InvalidBarcodeError):
            clean_barcode(barcode)

    @pytest.mark.parametrize("barcode,format_type", [
        ("3017620422003", "EAN-13"),
        ("96385074", "EAN-8"),
        ("036000291452", "UPC-A"),
        ("10012345678902", "GTIN-14"),
    ])
    def test_valid_formats(self, barcode, format_type):
        result = validate_barcode(barcode)

        assert result["is_valid"] is True
        assert result["format_type"] == format_type
        assert result["warnings"] == []

    def test_bad_checksum_reported(self):
        result = validate_barcode("3017620422004")

        assert result["is_valid"] is False
        assert result["format_type"] == "EAN-13"
        assert result["warnings"] == ["Invalid EAN-13 checksum"]

    def test_unknown_length(self):
        result = validate_barcode("12345")

        assert result["format_type"] == "unknown"
        assert result["is_valid"] is False


class TestRequestCoalescer:
    """Test single-flight semantics."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_result(self):
        coalescer = RequestCoalescer()
        calls = []

        async def operation():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "value"

        results = await asyncio.gather(*[coalescer.run("k", operation) for _ in range(4)])

        assert calls == [1]
        assert [value for value, _ in results] == ["value"] * 4
        assert [joined for _, joined in results] == [False, True, True, True]
        assert coalescer.in_flight("k") == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_run_independently(self):
        coalescer = RequestCoalescer()
        calls = []

        async def operation(key):
            calls.append(key)
            await asyncio.sleep(0.01)
            return key

        results = await asyncio.gather(
            coalescer.run("a", lambda: operation("a")),
            coalescer.run("b", lambda: operation("b")),
        )

        assert sorted(calls) == ["a", "b"]
        assert [value for value, _ in results] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_exception_shared_then_released(self):
        coalescer = RequestCoalescer()

        async def failing():
            await asyncio.sleep(0.01)
            raise ValueError("boom")

        results = await asyncio.gather(
            coalescer.run("k", failing),
            coalescer.run("k", failing),
            return_exceptions=True,
        )

        assert all(isinstance(result, ValueError) for result in results)
        value, joined = await coalescer.run("k", lambda: asyncio.sleep(0, result="retry"))
        assert value == "retry"
        assert joined is False

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_work(self):
        coalescer = RequestCoalescer()
        done = asyncio.Event()

        async def operation():
            await asyncio.sleep(0.05)
            done.set()
            return "finished"

        first = asyncio.ensure_future(coalescer.run("k", operation))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(coalescer.run("k", operation))
        await asyncio.sleep(0)
        first.cancel()

        value, joined = await second
        assert value == "finished"
        assert joined is True
        assert done.is_set()

    @pytest.mark.asyncio
    async def test_failure_after_all_waiters_left_is_reported(self):
        coalescer = RequestCoalescer()
        gate = asyncio.Event()

        async def failing():
            await gate.wait()
            raise RuntimeError("store unavailable")

        waiter = asyncio.ensure_future(coalescer.run("k", failing))
        await asyncio.sleep(0)
        task = coalescer._inflight["k"].task
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        with patch("transpareneats.services.resolver.coalescer.logger") as mock_logger:
            gate.set()
            await asyncio.wait({task})

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["key"] == "k"
        assert coalescer.in_flight("k") == 0


class TestEventSink:

    @pytest.mark.asyncio
    async def test_structlog_sink_accepts_events(self, clock):
        event = ResolutionEvent(
            barcode="123",
            outcome=ResolutionOutcome.MISS_RECORDED,
            source=None,
            cache_tier=None,
            timestamp=clock.now,
        )
        await StructlogEventSink().emit(event)

        data = event.to_dict()
        assert data["outcome"] == "miss_recorded"
        assert data["cache_tier"] is None
        assert data["timestamp"] == "2024-06-26T12:00:00+00:00"


class TestResolverFactory:
    """Test wiring from settings."""

    @pytest.mark.asyncio
    async def test_build_default_resolver(self, settings):
        services = await build_resolver(settings)
        try:
            assert services.cache.backend.backend_name == "memory"
            assert [adapter.provider_name for adapter in services.pipeline.adapters] == [
                "openfoodfacts", "usda", "nutritionix",
            ]
            assert services.curation.contribution_threshold == 3
        finally:
            await services.close()

    @pytest.mark.asyncio
    async def test_lifespan_resolves_end_to_end(self, settings):
        async with resolver_lifespan(settings, adapters=[]) as services:
            result = await services.pipeline.resolve("4006381333931")
            stored = await services.curation.get_product("4006381333931")

        assert result.outcome == ResolutionOutcome.MISS_RECORDED
        assert stored.search_attempts == 1
