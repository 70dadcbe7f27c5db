"""
Product models for barcode resolution.
Defines the canonical product shape, additive findings and the structured
result handed back to the request layer.
"""

from typing import List, Optional, Dict, Any
from enum import Enum
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from transpareneats.core.clock import ensure_utc


class ProductSource(str, Enum):
    """Where a product record's data came from."""
    CURATED = "curated"
    OPENFOODFACTS = "openfoodfacts"
    USDA = "usda"
    NUTRITIONIX = "nutritionix"
    USER = "user"


class ProductStatus(str, Enum):
    """Lifecycle status of a product record."""
    ACTIVE = "active"
    NOT_FOUND = "not_found"
    PENDING_REVIEW = "pending_review"
    DELETED = "deleted"


class CacheTier(str, Enum):
    """Cache tier that answered a resolution."""
    FAST = "fast"
    STORE = "store"


class ResolutionOutcome(str, Enum):
    """Terminal outcomes of the resolution state machine."""
    HIT_CACHE = "hit_cache"
    HIT_STORE = "hit_store"
    HIT_EXTERNAL = "hit_external"
    MISS_RECORDED = "miss_recorded"


class AdditiveFinding(BaseModel):
    """One additive detected in an ingredient list."""

    name: str
    type: str
    code: str
    concerns: List[str] = Field(default_factory=list)


class AdditiveReport(BaseModel):
    """Analyzer output, stored as-is in `flagged_additives`."""

    additives: List[AdditiveFinding] = Field(default_factory=list)


class NutritionData(BaseModel):
    """Nutrient values plus serving size and the provider's quality grade."""

    nutrients: Dict[str, Any] = Field(default_factory=dict)
    serving_size: str = ""
    nutrition_grade: str = ""


class ProductSnapshot(BaseModel):
    """
    Read-only view of a product record.

    This is what the fast cache mirrors and what callers receive; it never
    carries None for display fields.
    """

    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    barcode: str
    name: str = ""
    brand: str = ""
    category: str = ""
    ingredients_raw: str = ""
    ingredients_list: List[Any] = Field(default_factory=list)
    nutrition_data: NutritionData = Field(default_factory=NutritionData)
    flagged_additives: AdditiveReport = Field(default_factory=AdditiveReport)
    image_url: str = ""
    source: Optional[ProductSource] = None
    status: ProductStatus = ProductStatus.ACTIVE
    is_verified: bool = False
    search_attempts: int = 0
    last_searched: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_contributed: bool = False

    @field_validator("name", "brand", "category", "ingredients_raw", "image_url", mode="before")
    @classmethod
    def empty_string_for_none(cls, v):
        return "" if v is None else v

    @field_validator("ingredients_list", mode="before")
    @classmethod
    def empty_list_for_none(cls, v):
        return [] if v is None else v

    @field_validator("nutrition_data", "flagged_additives", mode="before")
    @classmethod
    def empty_mapping_for_none(cls, v):
        return {} if v is None else v

    @field_validator("is_verified", "user_contributed", mode="before")
    @classmethod
    def false_for_none(cls, v):
        return False if v is None else v

    @field_validator("search_attempts", mode="before")
    @classmethod
    def zero_for_none(cls, v):
        return 0 if v is None else v

    @field_validator("last_searched", "created_at", "updated_at")
    @classmethod
    def utc_timestamps(cls, v):
        return ensure_utc(v)


class ProductFields(BaseModel):
    """
    Editable product fields accepted from curation and user contributions.

    Derived and provenance fields (flagged additives, source, verification)
    are not accepted here.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    ingredients_raw: Optional[str] = None
    ingredients_list: Optional[List[Any]] = None
    nutrition_data: Optional[NutritionData] = None
    image_url: Optional[str] = None
    status: Optional[ProductStatus] = None


class ResolutionResult(BaseModel):
    """Structured answer of `resolve(barcode)`; never replaced by an exception."""

    success: bool
    barcode: str
    outcome: Optional[ResolutionOutcome] = None
    data: Optional[ProductSnapshot] = None
    from_cache: Optional[bool] = None
    cache_tier: Optional[CacheTier] = None
    source: Optional[str] = None
    message: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)
