"""
Candidate Filters for Comp Engine

Implements hard filters for comparable property selection, in order:
- Property type (exact match unless "any")
- Listing status
- Bedroom / bathroom / square-footage / year-built bands
- Garage and basement requirements
- Subject exclusion
- Geographic radius (great-circle distance)
- Recency window for sold comps
- Price band around the subject price

Survivors are ranked by distance, then price proximity, then id.
"""

import logging
import math
from collections import Counter
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from .models import (
    CandidateSet,
    CompCriteria,
    Coordinates,
    PropertyRecord,
    RankedCandidate,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Earth radius in miles
EARTH_RADIUS_MILES = 3959.0

# Recency window month length (days)
DAYS_PER_MONTH = 30

# Rejection reason codes
REJECT_TYPE = "property_type"
REJECT_STATUS = "status"
REJECT_BEDROOMS = "bedrooms"
REJECT_BATHROOMS = "bathrooms"
REJECT_SQFT = "square_feet"
REJECT_YEAR_BUILT = "year_built"
REJECT_GARAGE = "garage"
REJECT_BASEMENT = "basement"
REJECT_EXCLUDED = "excluded"
REJECT_DISTANCE_UNKNOWN = "distance_unknown"
REJECT_RADIUS = "radius"
REJECT_RECENCY_UNKNOWN = "recency_unknown"
REJECT_RECENCY = "recency"
REJECT_PRICE = "price"


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """
    Calculate distance between two points in miles using Haversine formula.

    Args:
        a, b: Point coordinates (degrees)

    Returns:
        Distance in miles
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.asin(min(1.0, math.sqrt(h)))


class CandidateFilter:
    """
    Applies a CompCriteria envelope to a pool of property records.

    A record must pass ALL filters to qualify as a candidate. The pool is
    treated as a read-only snapshot.
    """

    def __init__(self, reference_date: date = None):
        """
        Initialize filter with reference date.

        Args:
            reference_date: Date recency windows are measured from (default: today)
        """
        self._reference_date = reference_date or date.today()

    @property
    def reference_date(self) -> date:
        return self._reference_date

    def filter_candidates(
        self,
        pool: Iterable[PropertyRecord],
        criteria: CompCriteria,
        subject_location: Optional[Coordinates] = None,
    ) -> CandidateSet:
        """
        Filter and rank candidates for a subject.

        Args:
            pool: Candidate records from a geo/attribute query
            criteria: Validated search envelope
            subject_location: Subject coordinates; None disables the radius filter

        Returns:
            CandidateSet ordered by distance and capped at criteria.max_results
        """
        criteria.validate()

        enforce_radius = criteria.radius_miles is not None and subject_location is not None
        if criteria.radius_miles is not None and subject_location is None:
            logger.debug("Subject has no coordinates; radius filter not applied")

        rejections: Counter = Counter()
        accepted: List[RankedCandidate] = []

        for record in pool:
            reason = self._attribute_rejection(record, criteria)
            if reason is None:
                distance = self._distance(subject_location, record)
                if enforce_radius:
                    if distance is None:
                        reason = REJECT_DISTANCE_UNKNOWN
                    elif distance > criteria.radius_miles:
                        reason = REJECT_RADIUS
            if reason is None:
                reason = self._recency_rejection(record, criteria)
            if reason is None and not criteria.price_band.contains(record.price):
                reason = REJECT_PRICE

            if reason is not None:
                rejections[reason] += 1
                continue

            accepted.append(RankedCandidate(record=record, distance_miles=distance))

        accepted.sort(key=lambda c: self._sort_key(c, criteria.reference_price))
        selected = tuple(accepted[:criteria.max_results])

        logger.debug(
            "Candidate filter matched %d, returned %d, rejections=%s",
            len(accepted), len(selected), dict(rejections),
        )

        return CandidateSet(
            ranked=selected,
            matched_count=len(accepted),
            rejections=dict(rejections),
        )

    def _attribute_rejection(
        self,
        record: PropertyRecord,
        criteria: CompCriteria,
    ) -> Optional[str]:
        """Return the first failed attribute filter, or None."""
        if criteria.property_type is not None and record.property_type != criteria.property_type:
            return REJECT_TYPE
        if record.status not in criteria.statuses:
            return REJECT_STATUS
        if not criteria.bedrooms.contains(record.bedrooms):
            return REJECT_BEDROOMS
        if not criteria.bathrooms.contains(record.bathrooms):
            return REJECT_BATHROOMS
        if not criteria.square_feet.contains(record.square_feet):
            return REJECT_SQFT
        if not criteria.year_built.contains(record.year_built):
            return REJECT_YEAR_BUILT
        if criteria.require_garage and not record.has_garage:
            return REJECT_GARAGE
        if criteria.require_basement and not record.has_basement:
            return REJECT_BASEMENT
        if record.id in criteria.exclude_ids:
            return REJECT_EXCLUDED
        return None

    def _recency_rejection(
        self,
        record: PropertyRecord,
        criteria: CompCriteria,
    ) -> Optional[str]:
        """Check the recency window for statuses that age out."""
        if criteria.recency_months is None or not record.status.requires_recency:
            return None
        record_date = record.recency_date
        if record_date is None:
            return REJECT_RECENCY_UNKNOWN
        if not self._is_within_date_range(record_date, criteria.recency_months):
            return REJECT_RECENCY
        return None

    def _is_within_date_range(self, record_date: date, max_months: int) -> bool:
        """Check if date is within allowed range."""
        cutoff = self._reference_date - timedelta(days=max_months * DAYS_PER_MONTH)
        return record_date >= cutoff

    @staticmethod
    def _distance(
        subject_location: Optional[Coordinates],
        record: PropertyRecord,
    ) -> Optional[float]:
        """Great-circle distance, or None when either point is unknown."""
        location = record.location
        if subject_location is None or location is None:
            return None
        return haversine_distance(subject_location, location)

    @staticmethod
    def _sort_key(
        candidate: RankedCandidate,
        reference_price: Optional[int],
    ) -> Tuple[bool, float, float, str]:
        # Unknown distances rank after every known distance
        distance = candidate.distance_miles
        proximity = abs(candidate.record.price - reference_price) if reference_price is not None else 0
        return (
            distance is None,
            distance if distance is not None else 0.0,
            proximity,
            candidate.record.id,
        )


def filter_candidates(
    pool: Iterable[PropertyRecord],
    criteria: CompCriteria,
    subject_location: Optional[Coordinates] = None,
    reference_date: date = None,
) -> CandidateSet:
    """Convenience wrapper around CandidateFilter.filter_candidates."""
    return CandidateFilter(reference_date=reference_date).filter_candidates(
        pool, criteria, subject_location
    )
