"""
Canonical product schemas shared by the cache, the store and the resolver.
"""

from .product import (
    ProductSource,
    ProductStatus,
    CacheTier,
    ResolutionOutcome,
    AdditiveFinding,
    AdditiveReport,
    NutritionData,
    ProductSnapshot,
    ProductFields,
    ResolutionResult,
)

__all__ = [
    "ProductSource",
    "ProductStatus",
    "CacheTier",
    "ResolutionOutcome",
    "AdditiveFinding",
    "AdditiveReport",
    "NutritionData",
    "ProductSnapshot",
    "ProductFields",
    "ResolutionResult",
]
