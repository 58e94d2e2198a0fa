"""
Tests for the Comp Engine feature adjuster

Verifies:
- Computed categories use (subject - comp) x rate
- Overrides replace computed values verbatim
- The total is the plain sum of every category
- Incompatible comps are skipped, never aborting the batch
- Adjustment sessions never mutate earlier sessions
"""

import pytest
from dataclasses import replace
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine import (
    AdjustmentCategory,
    AdjustmentRates,
    AdjustmentSession,
    AdjustmentVector,
    IncompatibleComparison,
    ListingStatus,
    PropertyRecord,
    PropertyType,
    ValidationError,
    adjust_comps,
    compute_adjustment,
    default_adjustments,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def subject_property():
    """Standard subject: 3 bed, 2 bath, 2,200 sqft, built 2005."""
    return PropertyRecord(
        id="S1",
        price=450000,
        bedrooms=3,
        bathrooms=2.0,
        square_feet=2200,
        property_type=PropertyType.SINGLE_FAMILY,
        status=ListingStatus.ACTIVE,
        year_built=2005,
    )


@pytest.fixture
def create_comp():
    """Factory fixture for creating comps."""
    def _create(
        id: str = "C1",
        price: int = 435000,
        bedrooms: int = 3,
        bathrooms: float = 2.0,
        square_feet: int = 2100,
        year_built=2003,
    ) -> PropertyRecord:
        return PropertyRecord(
            id=id,
            price=price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            square_feet=square_feet,
            property_type=PropertyType.SINGLE_FAMILY,
            status=ListingStatus.SOLD,
            year_built=year_built,
        )
    return _create


# =============================================================================
# Test: Computed Adjustments
# =============================================================================

class TestComputedAdjustments:
    """Tests for automatic category amounts."""

    def test_standard_scenario(self, subject_property, create_comp):
        """Smaller, older comp: +$10,000 sqft, +$2,000 age."""
        adjusted = compute_adjustment(subject_property, create_comp())

        assert adjusted.adjustments.square_feet == 10000
        assert adjusted.adjustments.age == 2000
        assert adjusted.adjustments.bedrooms == 0
        assert adjusted.adjustments.bathrooms == 0
        assert adjusted.total_adjustment == 12000
        assert adjusted.adjusted_price == 447000

    def test_larger_comp_adjusts_down(self, subject_property, create_comp):
        vector = default_adjustments(subject_property, create_comp(square_feet=2400))
        assert vector.square_feet == -20000

    def test_bedroom_difference(self, subject_property, create_comp):
        vector = default_adjustments(subject_property, create_comp(bedrooms=4))
        assert vector.bedrooms == -5000

    def test_half_bath_difference(self, subject_property, create_comp):
        """Half a bath is half the per-bathroom rate."""
        subject = replace(subject_property, bathrooms=2.5)
        vector = default_adjustments(subject, create_comp(bathrooms=2.0))
        assert vector.bathrooms == 3750

    def test_unknown_year_gives_zero_age(self, subject_property, create_comp):
        vector = default_adjustments(subject_property, create_comp(year_built=None))
        assert vector.age == 0

    def test_manual_categories_default_to_zero(self, subject_property, create_comp):
        vector = default_adjustments(subject_property, create_comp())
        for name in ("garage", "basement", "location", "condition", "other"):
            assert getattr(vector, name) == 0

    def test_custom_rates(self, subject_property, create_comp):
        rates = AdjustmentRates(per_sqft=50, per_bedroom=10000, per_bathroom=5000, per_year=500)
        vector = default_adjustments(subject_property, create_comp(bedrooms=2), rates)

        assert vector.square_feet == 5000
        assert vector.bedrooms == 10000
        assert vector.age == 1000

    def test_zero_sqft_comp_incompatible(self, subject_property, create_comp):
        with pytest.raises(IncompatibleComparison) as exc_info:
            compute_adjustment(subject_property, create_comp(square_feet=0))
        assert exc_info.value.comp_id == "C1"


# =============================================================================
# Test: Overrides
# =============================================================================

class TestOverrides:
    """Analyst overrides win over computed values."""

    def test_override_replaces_computed_value(self, subject_property, create_comp):
        adjusted = compute_adjustment(subject_property, create_comp(), {"square_feet": 7500})

        assert adjusted.adjustments.square_feet == 7500
        assert adjusted.total_adjustment == 9500

    def test_override_manual_category(self, subject_property, create_comp):
        adjusted = compute_adjustment(
            subject_property,
            create_comp(),
            {AdjustmentCategory.CONDITION: -15000, "garage": 5000},
        )

        assert adjusted.adjustments.condition == -15000
        assert adjusted.adjustments.garage == 5000
        assert adjusted.total_adjustment == 12000 - 15000 + 5000

    def test_override_to_zero(self, subject_property, create_comp):
        adjusted = compute_adjustment(subject_property, create_comp(), {"age": 0})
        assert adjusted.adjustments.age == 0
        assert adjusted.total_adjustment == 10000

    def test_zero_manual_overrides_match_no_overrides(self, subject_property, create_comp):
        """Explicit zeros on the manual categories change nothing."""
        manual = ["garage", "basement", "location", "condition", "other"]
        comp = create_comp()

        zeroed = compute_adjustment(subject_property, comp, {k: 0 for k in manual})
        plain = compute_adjustment(subject_property, comp, {})

        assert zeroed.adjusted_price == plain.adjusted_price
        assert zeroed.adjustments == plain.adjustments

    def test_sqft_alias(self, subject_property, create_comp):
        adjusted = compute_adjustment(subject_property, create_comp(), {"sqft": 1})
        assert adjusted.adjustments.square_feet == 1

    def test_unknown_category_rejected(self, subject_property, create_comp):
        with pytest.raises(ValidationError) as exc_info:
            compute_adjustment(subject_property, create_comp(), {"pool": 10000})
        assert exc_info.value.field == "pool"

    @pytest.mark.parametrize("amount", ["5000", 12.5, None, True])
    def test_malformed_amount_rejected(self, subject_property, create_comp, amount):
        with pytest.raises(ValidationError):
            compute_adjustment(subject_property, create_comp(), {"location": amount})

    def test_integral_float_accepted(self, subject_property, create_comp):
        adjusted = compute_adjustment(subject_property, create_comp(), {"location": 2500.0})
        assert adjusted.adjustments.location == 2500


# =============================================================================
# Test: Adjustment Vector
# =============================================================================

class TestAdjustmentVector:
    """Tests for the fixed-shape adjustment vector."""

    def test_total_is_sum_of_all_categories(self):
        vector = AdjustmentVector(
            bedrooms=1, bathrooms=2, square_feet=3, age=4, garage=5,
            basement=6, location=7, condition=8, other=9,
        )
        assert vector.total == 45

    def test_every_category_present(self):
        assert set(AdjustmentVector().to_dict()) == {c.value for c in AdjustmentCategory}

    def test_with_overrides_returns_new_vector(self):
        original = AdjustmentVector(square_feet=10000)
        updated = original.with_overrides({"square_feet": 0})

        assert original.square_feet == 10000
        assert updated.square_feet == 0

    def test_from_dict_and_nonzero(self):
        vector = AdjustmentVector.from_dict({"age": 2000, "location": -1000})

        assert vector.get("age") == 2000
        assert vector.nonzero() == {"age": 2000, "location": -1000}


# =============================================================================
# Test: Batch Adjustment
# =============================================================================

class TestAdjustComps:
    """Batch adjustment keeps going past incompatible comps."""

    def test_incompatible_comp_skipped(self, subject_property, create_comp):
        comps = [
            create_comp("C1"),
            create_comp("BAD", square_feet=0),
            create_comp("C2", price=440000),
        ]
        batch = adjust_comps(subject_property, comps)

        assert [a.comp.id for a in batch.adjusted] == ["C1", "C2"]
        assert batch.skipped_ids == ["BAD"]
        assert not batch.is_empty

    def test_overrides_by_comp_id(self, subject_property, create_comp):
        comps = [create_comp("C1"), create_comp("C2")]
        batch = adjust_comps(subject_property, comps, {"C2": {"condition": 5000}})

        assert batch.adjusted[0].adjustments.condition == 0
        assert batch.adjusted[1].adjustments.condition == 5000

    def test_all_incompatible(self, subject_property, create_comp):
        batch = adjust_comps(subject_property, [create_comp(square_feet=0)])
        assert batch.is_empty


# =============================================================================
# Test: Adjustment Session
# =============================================================================

class TestAdjustmentSession:
    """Edits produce new sessions; earlier ones are untouched."""

    def test_with_override_leaves_original(self):
        session = AdjustmentSession(subject_id="S1")
        updated = session.with_override("C1", "condition", -5000)

        assert session.overrides_for("C1") == {}
        assert updated.overrides_for("C1") == {"condition": -5000}

    def test_successive_edits(self):
        session = (
            AdjustmentSession(subject_id="S1")
            .with_override("C1", "condition", -5000)
            .with_override("C1", AdjustmentCategory.GARAGE, 3000)
            .with_override("C2", "sqft", 0)
        )

        assert session.overrides_for("C1") == {"condition": -5000, "garage": 3000}
        assert session.overrides_for("C2") == {"square_feet": 0}

    def test_without_override(self):
        session = (
            AdjustmentSession(subject_id="S1")
            .with_override("C1", "condition", -5000)
            .with_override("C1", "garage", 3000)
        )

        assert session.without_override("C1", "garage").overrides_for("C1") == {"condition": -5000}
        assert session.without_override("C1").overrides_for("C1") == {}
        assert session.overrides_for("C1") == {"condition": -5000, "garage": 3000}

    def test_invalid_override_rejected(self):
        session = AdjustmentSession(subject_id="S1")
        with pytest.raises(ValidationError):
            session.with_override("C1", "condition", 10.5)
        with pytest.raises(ValidationError):
            session.with_override("C1", "pool", 1000)

    def test_overrides_are_read_only(self):
        session = AdjustmentSession(subject_id="S1", overrides={"C1": {"age": 0}})
        with pytest.raises(TypeError):
            session.overrides["C2"] = {}

    def test_apply(self, subject_property, create_comp):
        session = AdjustmentSession(subject_id="S1").with_override("C1", "age", 0)
        batch = session.apply(subject_property, [create_comp("C1")])

        assert batch.adjusted[0].adjusted_price == 445000

    def test_apply_to_wrong_subject(self, subject_property, create_comp):
        session = AdjustmentSession(subject_id="OTHER")
        with pytest.raises(ValidationError) as exc_info:
            session.apply(subject_property, [create_comp()])
        assert exc_info.value.field == "subject_id"
