"""
Test configuration and fixtures.
Uses a file-backed SQLite database (aiosqlite) per test and the in-memory
cache back-end, so no external service is needed.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from transpareneats.cache.backends import InMemoryCacheBackend
from transpareneats.cache.layered import LayeredCache
from transpareneats.core.config import Settings
from transpareneats.db.database import close_db, create_engine_from_settings, create_session_factory, init_db
from transpareneats.repositories.product_repository import ProductRepository
from transpareneats.services.resolver.curation import CurationService
from transpareneats.services.resolver.events import IResolutionEventSink, ResolutionEvent
from transpareneats.services.resolver.normalizer import ProductNormalizer
from transpareneats.services.resolver.pipeline import ResolutionPipeline
from transpareneats.services.sources.interfaces import ISourceAdapter, LookupResult, RawPayload

FROZEN_NOW = datetime(2024, 6, 26, 12, 0, 0, tzinfo=timezone.utc)

MSG_INGREDIENTS = "Water, Monosodium Glutamate, Red 40, E250"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeAdapter(ISourceAdapter):
    """
    Scripted source adapter.

    `outcome` is a RawPayload (Found), None (NotFound), a LookupResult
    returned as-is, or an exception raised from lookup.
    """

    def __init__(self, name: str, outcome=None, delay: float = 0.0, timeout: Optional[float] = None):
        self._name = name
        self._timeout = timeout
        self.outcome = outcome
        self.delay = delay
        self.calls: List[str] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    async def lookup(self, barcode: str) -> LookupResult:
        self.calls.append(barcode)
        if self.delay:
            await asyncio.sleep(self.delay)

        if isinstance(self.outcome, Exception):
            raise self.outcome
        if isinstance(self.outcome, LookupResult):
            return self.outcome
        if self.outcome is None:
            return LookupResult.not_found(self._name)
        return LookupResult.found(self._name, self.outcome)

    async def close(self):
        self.closed = True


class CollectingSink(IResolutionEventSink):
    """Keeps every emitted event in memory."""

    def __init__(self):
        self.events: List[ResolutionEvent] = []

    async def emit(self, event: ResolutionEvent) -> None:
        self.events.append(event)


def make_payload(barcode: str = "3017620422003", **overrides) -> RawPayload:
    values = {
        "name": "Hazelnut Spread",
        "brand": "Nutella",
        "category": "en:spreads",
        "ingredients_raw": MSG_INGREDIENTS,
        "ingredients_list": [{"text": "Water", "rank": 1}],
        "nutrients": {"energy": 539, "sugars": 56.3},
        "serving_size": "15g",
        "nutrition_grade": "e",
        "image_url": "https://images.example.org/3017620422003.jpg",
    }
    values.update(overrides)
    return RawPayload(barcode=barcode, **values)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'products.db'}",
        enable_redis=False,
    )


@pytest.fixture
async def engine(settings):
    """Fresh database per test."""
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def repository(engine):
    return ProductRepository(create_session_factory(engine))


@pytest.fixture
def backend():
    return InMemoryCacheBackend()


@pytest.fixture
def layered_cache(backend, repository):
    return LayeredCache(backend, repository, default_ttl=3600)


@pytest.fixture
def normalizer(repository, clock):
    return ProductNormalizer(repository, clock=clock)


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def adapters():
    """Primary, secondary and tertiary adapters that find nothing by default."""
    return [
        FakeAdapter("openfoodfacts"),
        FakeAdapter("usda"),
        FakeAdapter("nutritionix"),
    ]


@pytest.fixture
def pipeline(layered_cache, adapters, normalizer, sink, clock):
    return ResolutionPipeline(
        cache=layered_cache,
        adapters=adapters,
        normalizer=normalizer,
        event_sink=sink,
        adapter_timeout=1.0,
        negative_cache_window=timedelta(hours=24),
        clock=clock,
    )


@pytest.fixture
def curation(layered_cache):
    return CurationService(layered_cache, contribution_threshold=3)


@pytest.fixture
def payload_factory():
    """Build RawPayload objects with realistic defaults."""
    return make_payload


@pytest.fixture
def adapter_factory():
    """Build scripted adapters: adapter_factory(name, outcome, delay=..., timeout=...)."""
    return FakeAdapter
