"""
Criteria Normalizer for Comp Engine

Derives the default comparable-search envelope from a subject property:
- Bedroom band (+/- 1, floor of 1)
- Bathroom band (+/- 1, whole baths, floor of 1)
- Square-footage band (80% - 120%)
- Exact property type
- Radius, recency window, price band and result cap from defaults
"""

import math
from dataclasses import dataclass

from .errors import InvalidSubjectProperty
from .models import Band, CompCriteria, ListingStatus, PropertyRecord, round_half_up


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_RADIUS_MILES = 3.0
DEFAULT_RECENCY_MONTHS = 6
DEFAULT_PRICE_BAND_PERCENT = 20.0
DEFAULT_MAX_RESULTS = 5

BEDROOM_SPREAD = 1
BATHROOM_SPREAD = 1
SQFT_LOWER_RATIO = 0.8
SQFT_UPPER_RATIO = 1.2

# Relaxation applied when a search finds nothing
RELAXED_BEDROOM_STEP = 1
RELAXED_BATHROOM_STEP = 0.5
RELAXED_SQFT_LOWER_RATIO = 0.7
RELAXED_SQFT_UPPER_RATIO = 1.3
RELAXED_PRICE_LOWER_RATIO = 0.9
RELAXED_PRICE_UPPER_RATIO = 1.1


@dataclass(frozen=True)
class CriteriaDefaults:
    """Tunable defaults for derived criteria."""
    radius_miles: float = DEFAULT_RADIUS_MILES
    recency_months: int = DEFAULT_RECENCY_MONTHS
    price_band_percent: float = DEFAULT_PRICE_BAND_PERCENT
    max_results: int = DEFAULT_MAX_RESULTS


def validate_subject(subject: PropertyRecord) -> None:
    """
    Check that a subject can anchor a comp search.

    Raises:
        InvalidSubjectProperty: on non-positive square footage or a
            negative bedroom count.
    """
    if subject.square_feet <= 0:
        raise InvalidSubjectProperty("square_feet", "subject square footage must be positive")
    if subject.bedrooms < 0:
        raise InvalidSubjectProperty("bedrooms", "subject bedroom count cannot be negative")


def derive_default_criteria(
    subject: PropertyRecord,
    defaults: CriteriaDefaults = CriteriaDefaults(),
) -> CompCriteria:
    """
    Derive the default search criteria for a subject property.

    Args:
        subject: The property being valued
        defaults: Radius, recency, price band and cap to use

    Returns:
        CompCriteria anchored on the subject's price, excluding the
        subject itself from results

    Raises:
        InvalidSubjectProperty: if the subject fails validation
    """
    validate_subject(subject)

    return CompCriteria(
        bedrooms=Band(
            minimum=max(1, subject.bedrooms - BEDROOM_SPREAD),
            maximum=subject.bedrooms + BEDROOM_SPREAD,
        ),
        bathrooms=Band(
            minimum=max(1, math.floor(subject.bathrooms - BATHROOM_SPREAD)),
            maximum=math.ceil(subject.bathrooms + BATHROOM_SPREAD),
        ),
        square_feet=Band(
            minimum=round_half_up(subject.square_feet * SQFT_LOWER_RATIO),
            maximum=round_half_up(subject.square_feet * SQFT_UPPER_RATIO),
        ),
        radius_miles=defaults.radius_miles,
        property_type=subject.property_type,
        statuses=frozenset({ListingStatus.SOLD}),
        recency_months=defaults.recency_months,
        price_band_percent=defaults.price_band_percent,
        reference_price=subject.price,
        max_results=defaults.max_results,
        exclude_ids=frozenset({subject.id}),
    )


def relax_criteria(criteria: CompCriteria) -> CompCriteria:
    """
    Widen numeric bands one step for a retry after an empty search.

    The price band becomes an explicit range at 90% of its lower bound
    and 110% of its upper bound.

    Unbounded sides stay unbounded. Type, status, radius and recency
    filters are left unchanged.
    """
    def widen(band: Band, step: float) -> Band:
        # Floor of 1, unless the band already reached below it
        return Band(
            minimum=max(min(band.minimum, 1), band.minimum - step) if band.minimum is not None else None,
            maximum=band.maximum + step if band.maximum is not None else None,
        )

    sqft = criteria.square_feet
    price = criteria.price_band

    return criteria.with_changes(
        bedrooms=widen(criteria.bedrooms, RELAXED_BEDROOM_STEP),
        bathrooms=widen(criteria.bathrooms, RELAXED_BATHROOM_STEP),
        square_feet=Band(
            minimum=round_half_up(sqft.minimum * RELAXED_SQFT_LOWER_RATIO) if sqft.minimum is not None else None,
            maximum=round_half_up(sqft.maximum * RELAXED_SQFT_UPPER_RATIO) if sqft.maximum is not None else None,
        ),
        price_range=Band(
            minimum=round_half_up(price.minimum * RELAXED_PRICE_LOWER_RATIO) if price.minimum is not None else None,
            maximum=round_half_up(price.maximum * RELAXED_PRICE_UPPER_RATIO) if price.maximum is not None else None,
        ) if price.is_bounded else None,
    )
