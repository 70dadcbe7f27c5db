"""
Resolution core: pipeline, normalizer, coalescing and curation.

Usage:
    async with resolver_lifespan() as services:
        result = await services.pipeline.resolve("3017620422003")
"""

from .barcode import InvalidBarcodeError, clean_barcode, validate_barcode
from .coalescer import RequestCoalescer
from .curation import CurationService
from .events import IResolutionEventSink, ResolutionEvent, StructlogEventSink
from .factory import ResolverServices, build_resolver, resolver_lifespan
from .normalizer import ProductNormalizer
from .pipeline import NOT_FOUND_SUGGESTIONS, ResolutionPipeline

__all__ = [
    "InvalidBarcodeError",
    "clean_barcode",
    "validate_barcode",
    "RequestCoalescer",
    "CurationService",
    "IResolutionEventSink",
    "ResolutionEvent",
    "StructlogEventSink",
    "ResolverServices",
    "build_resolver",
    "resolver_lifespan",
    "ProductNormalizer",
    "NOT_FOUND_SUGGESTIONS",
    "ResolutionPipeline",
]
