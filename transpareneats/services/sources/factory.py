"""
Factory pour les adapters de sources externes.

Architecture Pattern : Factory Method + Strategy
L'ordre retourné par `build_default_adapters` est l'ordre de fallback.
"""

from typing import List

import structlog

from transpareneats.core.config import Settings
from .interfaces import ISourceAdapter, SourceProvider
from .openfoodfacts import OpenFoodFactsAdapter
from .usda import USDAAdapter
from .nutritionix import NutritionixAdapter

logger = structlog.get_logger(__name__)

DEFAULT_PROVIDER_ORDER = [
    SourceProvider.OPENFOODFACTS,
    SourceProvider.USDA,
    SourceProvider.NUTRITIONIX,
]


class SourceAdapterFactory:
    """Crée un adapter selon le provider demandé."""

    @staticmethod
    def create_adapter(provider: SourceProvider, settings: Settings) -> ISourceAdapter:
        """
        Crée un adapter pour le provider.

        Des credentials absents ne font pas échouer la création : l'adapter
        répondra TransientError à chaque lookup.
        """
        common = {
            "timeout": settings.adapter_timeout,
            "user_agent": settings.openfoodfacts_user_agent,
        }

        if provider == SourceProvider.OPENFOODFACTS:
            return OpenFoodFactsAdapter(**common)

        elif provider == SourceProvider.USDA:
            if not settings.usda_api_key:
                logger.warning("USDA API key not configured, adapter will be skipped at lookup")
            return USDAAdapter(api_key=settings.usda_api_key, **common)

        elif provider == SourceProvider.NUTRITIONIX:
            if not settings.nutritionix_app_id or not settings.nutritionix_app_key:
                logger.warning("Nutritionix API credentials not configured, adapter will be skipped at lookup")
            return NutritionixAdapter(
                app_id=settings.nutritionix_app_id,
                app_key=settings.nutritionix_app_key,
                **common
            )

        else:
            raise ValueError(f"Unsupported source provider: {provider}")


def build_default_adapters(settings: Settings) -> List[ISourceAdapter]:
    """Adapters in fallback priority order: primary, secondary, tertiary."""
    adapters = [SourceAdapterFactory.create_adapter(provider, settings) for provider in DEFAULT_PROVIDER_ORDER]
    logger.info("Source adapters created", providers=[adapter.provider_name for adapter in adapters])
    return adapters
