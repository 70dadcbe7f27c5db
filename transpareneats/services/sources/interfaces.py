"""
Interfaces pour les adapters de sources externes.
Chaque adapter encapsule exactement un provider et expose une seule capacité :
lookup(barcode) -> Found | NotFound | TransientError.

Architecture Pattern : Strategy Pattern + Tagged Result
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List


class SourceProvider(str, Enum):
    """Providers externes, dans l'ordre de priorité par défaut."""
    OPENFOODFACTS = "openfoodfacts"
    USDA = "usda"
    NUTRITIONIX = "nutritionix"


@dataclass
class RawPayload:
    """
    Product data as mapped by one adapter.

    None means the provider did not supply the field; the normalizer only
    overwrites stored fields that are not None.
    """
    barcode: str
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    ingredients_raw: Optional[str] = None
    ingredients_list: Optional[List[Any]] = None
    nutrients: Optional[Dict[str, Any]] = None
    serving_size: Optional[str] = None
    nutrition_grade: Optional[str] = None
    image_url: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class LookupResult:
    """Résultat d'un lookup : exactement un des trois variants."""
    status: LookupStatus
    provider: str
    payload: Optional[RawPayload] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, provider: str, payload: RawPayload) -> "LookupResult":
        return cls(status=LookupStatus.FOUND, provider=provider, payload=payload)

    @classmethod
    def not_found(cls, provider: str) -> "LookupResult":
        return cls(status=LookupStatus.NOT_FOUND, provider=provider)

    @classmethod
    def transient_error(cls, provider: str, error: str) -> "LookupResult":
        return cls(status=LookupStatus.TRANSIENT_ERROR, provider=provider, error=error)

    @property
    def is_found(self) -> bool:
        return self.status == LookupStatus.FOUND


class ISourceAdapter(ABC):
    """
    Interface d'un adapter de source externe.

    Responsabilités :
    - Appel du provider pour un code-barres
    - Mapping de la réponse vers RawPayload
    - Conversion de toute erreur en LookupResult.transient_error
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Nom du provider (valeur de ProductSource)."""
        pass

    @property
    def timeout(self) -> Optional[float]:
        """Timeout propre à l'adapter, None pour le défaut du pipeline."""
        return None

    @abstractmethod
    async def lookup(self, barcode: str) -> LookupResult:
        """
        Recherche un produit par son code-barres.

        Ne lève jamais d'exception pour une erreur de provider : elle est
        retournée comme variant TransientError.
        """
        pass

    async def close(self):
        """Ferme les ressources réseau de l'adapter."""
        return None


class SourceAdapterError(Exception):
    """Exception pour les erreurs d'un provider externe."""

    def __init__(self, message: str, provider: str = "", barcode: str = "", original_error: Exception = None):
        super().__init__(message)
        self.provider = provider
        self.barcode = barcode
        self.original_error = original_error


class MissingCredentialsError(SourceAdapterError):
    """Credentials du provider absents de la configuration."""
    pass


class SourceRateLimitError(SourceAdapterError):
    """Exception pour les limitations de rate limit."""
    pass
