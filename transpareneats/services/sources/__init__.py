"""
Adapters de sources externes pour la résolution de codes-barres.

Architecture : Factory Pattern + Strategy Pattern
Usage : une interface unique `lookup(barcode)` par provider

Example:
    from transpareneats.services.sources import build_default_adapters

    adapters = build_default_adapters(settings)
    result = await adapters[0].lookup("3017620422003")
"""

from .interfaces import (
    ISourceAdapter,
    SourceProvider,
    RawPayload,
    LookupStatus,
    LookupResult,
    SourceAdapterError,
    MissingCredentialsError,
    SourceRateLimitError,
)
from .base import HTTPSourceAdapter
from .openfoodfacts import OpenFoodFactsAdapter
from .usda import USDAAdapter, transform_usda_nutrients
from .nutritionix import NutritionixAdapter, split_ingredient_statement
from .factory import SourceAdapterFactory, build_default_adapters, DEFAULT_PROVIDER_ORDER

__all__ = [
    # Interfaces
    "ISourceAdapter",
    "SourceProvider",
    "RawPayload",
    "LookupStatus",
    "LookupResult",

    # Exceptions
    "SourceAdapterError",
    "MissingCredentialsError",
    "SourceRateLimitError",

    # Implémentations
    "HTTPSourceAdapter",
    "OpenFoodFactsAdapter",
    "USDAAdapter",
    "NutritionixAdapter",
    "transform_usda_nutrients",
    "split_ingredient_statement",

    # Factory
    "SourceAdapterFactory",
    "build_default_adapters",
    "DEFAULT_PROVIDER_ORDER",
]
