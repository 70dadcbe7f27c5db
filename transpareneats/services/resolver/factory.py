"""
Wiring of the resolution core from settings.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from transpareneats.cache.backends import create_cache_backend
from transpareneats.cache.layered import LayeredCache
from transpareneats.core.config import Settings, get_settings
from transpareneats.core.logging import configure_logging
from transpareneats.db.database import close_db, create_engine_from_settings, create_session_factory, init_db
from transpareneats.repositories.product_repository import ProductRepository
from transpareneats.services.resolver.curation import CurationService
from transpareneats.services.resolver.events import IResolutionEventSink
from transpareneats.services.resolver.normalizer import ProductNormalizer
from transpareneats.services.resolver.pipeline import ResolutionPipeline
from transpareneats.services.sources.factory import build_default_adapters
from transpareneats.services.sources.interfaces import ISourceAdapter

logger = structlog.get_logger(__name__)


@dataclass
class ResolverServices:
    """Everything a request layer needs, plus what must be closed on shutdown."""
    engine: AsyncEngine
    cache: LayeredCache
    pipeline: ResolutionPipeline
    curation: CurationService

    async def close(self):
        await self.pipeline.close()
        await close_db(self.engine)
        logger.info("Resolver services closed")


async def build_resolver(
    settings: Optional[Settings] = None,
    event_sink: Optional[IResolutionEventSink] = None,
    adapters: Optional[List[ISourceAdapter]] = None
) -> ResolverServices:
    """Create engine, store, fast cache back-end and adapters, and wire them."""
    settings = settings or get_settings()

    engine = create_engine_from_settings(settings)
    if settings.environment == "development":
        await init_db(engine)
        logger.info("Database initialized")

    repository = ProductRepository(create_session_factory(engine))
    backend = await create_cache_backend(settings)
    cache = LayeredCache(backend, repository, default_ttl=settings.cache_ttl)

    pipeline = ResolutionPipeline(
        cache=cache,
        adapters=adapters if adapters is not None else build_default_adapters(settings),
        normalizer=ProductNormalizer(repository),
        event_sink=event_sink,
        adapter_timeout=settings.adapter_timeout,
        negative_cache_window=timedelta(hours=settings.negative_cache_hours),
    )
    curation = CurationService(cache, contribution_threshold=settings.contribution_threshold)

    logger.info(
        "Resolver services ready",
        cache_backend=backend.backend_name,
        providers=[adapter.provider_name for adapter in pipeline.adapters]
    )
    return ResolverServices(engine=engine, cache=cache, pipeline=pipeline, curation=curation)


@asynccontextmanager
async def resolver_lifespan(settings: Optional[Settings] = None, **kwargs) -> AsyncIterator[ResolverServices]:
    """Configure logging, build the resolver on entry and close every connection on exit."""
    settings = settings or get_settings()
    configure_logging(settings)
    services = await build_resolver(settings, **kwargs)
    try:
        yield services
    finally:
        await services.close()
