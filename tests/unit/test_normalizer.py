"""
Unit tests for the persistence normalizer.
"""

import pytest
from unittest.mock import patch

from transpareneats.core.clock import ensure_utc
from transpareneats.models.product import (
    AdditiveReport,
    NutritionData,
    ProductSnapshot,
    ProductSource,
    ProductStatus,
)
from transpareneats.services.additives import analyze_ingredients
from transpareneats.services.sources.interfaces import RawPayload


class TestNormalize:
    """Test the canonical mapping."""

    def test_missing_fields_default_to_empty(self, normalizer):
        snapshot = normalizer.normalize(RawPayload(barcode="12345678"), "nutritionix")

        assert snapshot.name == ""
        assert snapshot.brand == ""
        assert snapshot.ingredients_raw == ""
        assert snapshot.ingredients_list == []
        assert snapshot.nutrition_data == NutritionData()
        assert snapshot.flagged_additives.additives == []
        assert snapshot.source == ProductSource.NUTRITIONIX
        assert snapshot.status == ProductStatus.ACTIVE

    def test_analyzer_runs_on_ingredients(self, normalizer, payload_factory):
        payload = payload_factory()
        snapshot = normalizer.normalize(payload, ProductSource.OPENFOODFACTS)

        assert snapshot.flagged_additives == analyze_ingredients(payload.ingredients_raw)
        assert snapshot.nutrition_data.serving_size == "15g"
        assert snapshot.nutrition_data.nutrition_grade == "e"

    def test_unknown_source_rejected(self, normalizer, payload_factory):
        with pytest.raises(ValueError):
            normalizer.normalize(payload_factory(), "supermarket")

    def test_numeric_scalars_become_text(self, normalizer):
        raw = RawPayload(barcode="0049000028911", name="Cola", category=9, serving_size=355)

        snapshot = normalizer.normalize(raw, "nutritionix")

        assert snapshot.category == "9"
        assert snapshot.nutrition_data.serving_size == "355"
        assert snapshot.brand == ""


class TestPersist:
    """Test the write policy."""

    @pytest.mark.asyncio
    async def test_round_trip(self, normalizer, repository, payload_factory):
        payload = payload_factory()
        await normalizer.persist(payload, "openfoodfacts")

        stored = ProductSnapshot.model_validate(await repository.find_by_barcode(payload.barcode))

        assert stored.source == ProductSource.OPENFOODFACTS
        assert stored.status == ProductStatus.ACTIVE
        assert stored.flagged_additives == analyze_ingredients(stored.ingredients_raw)
        assert stored.name == "Hazelnut Spread"
        assert stored.nutrition_data.nutrients == {"energy": 539, "sugars": 56.3}

    @pytest.mark.asyncio
    async def test_merge_overwrites_present_fields_only(self, normalizer, repository, payload_factory, clock):
        payload = payload_factory()
        created = await normalizer.persist(payload, "openfoodfacts")

        clock.advance(days=3)
        partial = RawPayload(barcode=payload.barcode, name="Renamed", nutrients={"energy": 100})
        updated = await normalizer.persist(partial, "usda")

        assert updated.id == created.id
        assert updated.name == "Renamed"
        assert updated.brand == "Nutella"
        assert updated.ingredients_raw == payload.ingredients_raw
        assert AdditiveReport.model_validate(updated.flagged_additives) == analyze_ingredients(payload.ingredients_raw)
        assert updated.nutrition_data == {"nutrients": {"energy": 100}, "serving_size": "", "nutrition_grade": ""}
        assert updated.source == ProductSource.USDA
        assert ensure_utc(updated.created_at) == ensure_utc(created.created_at)
        assert ensure_utc(updated.last_searched) == clock.now

    @pytest.mark.asyncio
    async def test_not_found_record_becomes_active(self, normalizer, repository, payload_factory):
        payload = payload_factory()
        await repository.log_failed_search(payload.barcode)
        await repository.log_failed_search(payload.barcode)

        product = await normalizer.persist(payload, "openfoodfacts")

        assert product.status == ProductStatus.ACTIVE
        assert product.search_attempts == 2

    @pytest.mark.asyncio
    async def test_curated_record_untouched(self, normalizer, repository, payload_factory):
        payload = payload_factory()
        await repository.create({
            "barcode": payload.barcode,
            "name": "Curated Name",
            "source": ProductSource.CURATED,
            "is_verified": True,
        })

        product = await normalizer.persist(payload, "openfoodfacts")
        stored = await repository.find_by_barcode(payload.barcode)

        assert product.name == "Curated Name"
        assert stored.source == ProductSource.CURATED
        assert stored.is_verified is True
        assert stored.name == "Curated Name"
        assert stored.ingredients_raw == ""

    @pytest.mark.asyncio
    async def test_curation_committed_before_write_is_kept(self, normalizer, repository, curation, payload_factory):
        payload = payload_factory()
        await repository.log_failed_search(payload.barcode)
        real_upsert = repository.upsert

        async def curate_then_upsert(*args, **kwargs):
            await curation.curate(payload.barcode, {"name": "Curated name"})
            return await real_upsert(*args, **kwargs)

        with patch.object(repository, "upsert", new=curate_then_upsert):
            product = await normalizer.persist(payload, "openfoodfacts")

        stored = await repository.find_by_barcode(payload.barcode)
        assert product.source == ProductSource.CURATED
        assert stored.source == ProductSource.CURATED
        assert stored.is_verified is True
        assert stored.name == "Curated name"
        assert stored.ingredients_raw == ""
