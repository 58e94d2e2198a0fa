"""
Feature Adjuster for Comp Engine

Computes what a comp would have sold for with the subject's features.
Each difference is (subject - comp) times a per-unit rate, added to the
comp's price:
- Square footage: $100 / sqft
- Bedrooms: $5,000 / bedroom
- Bathrooms: $7,500 / bathroom
- Age: $1,000 / year (only when both years are known)

Garage, basement, location, condition and other need human judgement
and stay at zero unless overridden. Overrides always win.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Union

from .errors import IncompatibleComparison, ValidationError
from .models import (
    AdjustedComp,
    AdjustmentBatch,
    AdjustmentCategory,
    AdjustmentVector,
    PropertyRecord,
    SkippedComp,
    round_half_up,
)


logger = logging.getLogger(__name__)


Overrides = Mapping[Union[str, AdjustmentCategory], int]


# =============================================================================
# Configuration Constants
# =============================================================================

RATE_PER_SQFT = 100
RATE_PER_BEDROOM = 5_000
RATE_PER_BATHROOM = 7_500
RATE_PER_YEAR = 1_000


@dataclass(frozen=True)
class AdjustmentRates:
    """Per-unit dollar rates for automatically computed adjustments."""
    per_sqft: int = RATE_PER_SQFT
    per_bedroom: int = RATE_PER_BEDROOM
    per_bathroom: int = RATE_PER_BATHROOM
    per_year: int = RATE_PER_YEAR


DEFAULT_RATES = AdjustmentRates()


def default_adjustments(
    subject: PropertyRecord,
    comp: PropertyRecord,
    rates: AdjustmentRates = DEFAULT_RATES,
) -> AdjustmentVector:
    """
    Compute the automatic adjustment vector for a comp.

    Raises:
        IncompatibleComparison: if the comp has no usable square footage
    """
    if comp.square_feet <= 0:
        raise IncompatibleComparison(comp.id, "square footage must be positive")

    age = 0
    if subject.year_built is not None and comp.year_built is not None:
        age = (subject.year_built - comp.year_built) * rates.per_year

    return AdjustmentVector(
        square_feet=(subject.square_feet - comp.square_feet) * rates.per_sqft,
        bedrooms=(subject.bedrooms - comp.bedrooms) * rates.per_bedroom,
        bathrooms=round_half_up((subject.bathrooms - comp.bathrooms) * rates.per_bathroom),
        age=age,
    )


def compute_adjustment(
    subject: PropertyRecord,
    comp: PropertyRecord,
    overrides: Optional[Overrides] = None,
    rates: AdjustmentRates = DEFAULT_RATES,
) -> AdjustedComp:
    """
    Adjust a single comp against the subject.

    Args:
        subject: The property being valued
        comp: The comparable property
        overrides: Category amounts that replace computed values verbatim
        rates: Per-unit rates for computed categories

    Returns:
        AdjustedComp with the final vector and adjusted price

    Raises:
        IncompatibleComparison: if the comp cannot be compared
        ValidationError: if an override names an unknown category
    """
    vector = default_adjustments(subject, comp, rates).with_overrides(overrides)
    return AdjustedComp(comp=comp, adjustments=vector)


def adjust_comps(
    subject: PropertyRecord,
    comps: Iterable[PropertyRecord],
    overrides_by_id: Optional[Mapping[str, Overrides]] = None,
    rates: AdjustmentRates = DEFAULT_RATES,
) -> AdjustmentBatch:
    """
    Adjust several comps, skipping any that cannot be compared.

    An incompatible comp is reported in the batch's skipped list and
    never aborts the rest of the batch.
    """
    overrides_by_id = overrides_by_id or {}
    adjusted = []
    skipped = []

    for comp in comps:
        try:
            adjusted.append(
                compute_adjustment(subject, comp, overrides_by_id.get(comp.id), rates)
            )
        except IncompatibleComparison as e:
            logger.warning("Skipping comp %s: %s", e.comp_id, e.reason)
            skipped.append(SkippedComp(comp_id=e.comp_id, reason=e.reason))

    return AdjustmentBatch(adjusted=tuple(adjusted), skipped=tuple(skipped))


# =============================================================================
# Adjustment Session
# =============================================================================


def _freeze(overrides: Mapping[str, Dict[str, int]]) -> Mapping[str, Mapping[str, int]]:
    return MappingProxyType({k: MappingProxyType(dict(v)) for k, v in overrides.items()})


@dataclass(frozen=True)
class AdjustmentSession:
    """
    Analyst overrides for one subject, keyed by comp id.

    Each edit returns a new session; existing sessions never change.
    """
    subject_id: str
    overrides: Mapping[str, Mapping[str, int]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "overrides", _freeze(self.overrides))

    def overrides_for(self, comp_id: str) -> Dict[str, int]:
        return dict(self.overrides.get(comp_id, {}))

    def with_override(
        self,
        comp_id: str,
        category: Union[str, AdjustmentCategory],
        amount: int,
    ) -> "AdjustmentSession":
        """Return a session with one category override set."""
        key = AdjustmentCategory.from_key(category)
        # Validates the amount the same way the adjuster will
        AdjustmentVector().with_overrides({key: amount})
        updated = {k: dict(v) for k, v in self.overrides.items()}
        updated.setdefault(comp_id, {})[key.value] = amount
        return AdjustmentSession(subject_id=self.subject_id, overrides=updated)

    def without_override(
        self,
        comp_id: str,
        category: Optional[Union[str, AdjustmentCategory]] = None,
    ) -> "AdjustmentSession":
        """Drop one category override, or every override for the comp."""
        updated = {k: dict(v) for k, v in self.overrides.items()}
        if category is None:
            updated.pop(comp_id, None)
        elif comp_id in updated:
            updated[comp_id].pop(AdjustmentCategory.from_key(category).value, None)
            if not updated[comp_id]:
                del updated[comp_id]
        return AdjustmentSession(subject_id=self.subject_id, overrides=updated)

    def apply(
        self,
        subject: PropertyRecord,
        comps: Iterable[PropertyRecord],
        rates: AdjustmentRates = DEFAULT_RATES,
    ) -> AdjustmentBatch:
        """Adjust comps using this session's overrides."""
        if subject.id != self.subject_id:
            raise ValidationError(
                "subject_id", f"session is for {self.subject_id}, not {subject.id}"
            )
        return adjust_comps(subject, comps, self.overrides, rates)
