"""
Valuation Engine for Comp Engine

Implements:
- Summary statistics over adjusted comps (range, mean, median)
- Estimated market value: mean adjusted price, nearest $1,000
- After-repair value (ARV) and maximum allowable offer (MAO)
- The find-comps and adjust-and-summarize pipelines
"""

import logging
import statistics
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from .adjustments import DEFAULT_RATES, AdjustmentRates, Overrides, adjust_comps
from .criteria import CriteriaDefaults, derive_default_criteria, relax_criteria, validate_subject
from .errors import EmptyComparisonSet, ValidationError
from .filters import CandidateFilter
from .models import (
    AdjustedComp,
    AdjustmentBatch,
    CandidateSet,
    CompCriteria,
    ListingStatus,
    PropertyRecord,
    ValuationSummary,
    round_half_up,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

ESTIMATE_ROUNDING = 1_000

# Selected comps must stay small enough for a human to review
MAX_SELECTED_COMPS = 5

# 70% rule for investor offers
DEFAULT_ARV_MULTIPLIER = 0.7

EMPTY_COMPARISON_SET = "empty_comparison_set"


# =============================================================================
# Aggregation
# =============================================================================


def summarize(adjusted_comps: Sequence[AdjustedComp]) -> ValuationSummary:
    """
    Summarise a set of adjusted comps.

    EMV = Mean(adjusted prices), rounded half-up to the nearest $1,000.

    Args:
        adjusted_comps: Comps with their final adjustment vectors

    Returns:
        ValuationSummary with range, estimate and sample size

    Raises:
        EmptyComparisonSet: if no comps are given
    """
    if not adjusted_comps:
        raise EmptyComparisonSet()

    prices = [c.adjusted_price for c in adjusted_comps]
    mean_price = statistics.fmean(prices)

    per_sqft = [c.comp.price_per_sqft for c in adjusted_comps if c.comp.price_per_sqft is not None]

    return ValuationSummary(
        adjusted_price_low=min(prices),
        adjusted_price_high=max(prices),
        estimated_value=round_half_up(mean_price, ESTIMATE_ROUNDING),
        sample_size=len(prices),
        mean_adjusted_price=mean_price,
        median_adjusted_price=float(statistics.median(prices)),
        average_price_per_sqft=round_half_up(statistics.fmean(per_sqft)) if per_sqft else None,
    )


def estimate_arv(comps: Iterable[PropertyRecord]) -> Optional[float]:
    """
    After-repair value: mean price of the sold comps.

    Returns:
        ARV, or None if none of the comps have sold
    """
    sold = [c.price for c in comps if c.status is ListingStatus.SOLD]
    if not sold:
        return None
    return statistics.fmean(sold)


def maximum_allowable_offer(
    arv: Optional[float],
    multiplier: float = DEFAULT_ARV_MULTIPLIER,
) -> Optional[int]:
    """Maximum allowable offer under the ARV multiplier rule."""
    if arv is None:
        return None
    if multiplier < 0:
        raise ValidationError("multiplier", "must be non-negative")
    return round_half_up(arv * multiplier)


# =============================================================================
# Pipeline Results
# =============================================================================


@dataclass(frozen=True)
class CompSearchResult:
    """Outcome of a find-comps request."""
    candidates: CandidateSet
    criteria: CompCriteria
    fallback_used: bool = False

    @property
    def reason(self) -> Optional[str]:
        return self.candidates.reason

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "comps": [c.to_dict() for c in self.candidates.ranked],
            "count": len(self.candidates),
            "matched_count": self.candidates.matched_count,
            "reason": self.reason,
            "fallback_used": self.fallback_used,
            "criteria": self.criteria.to_dict(),
            "rejections": dict(self.candidates.rejections),
            "by_status": {
                status.value: [r.id for r in records]
                for status, records in self.candidates.by_status().items()
            },
        }


@dataclass(frozen=True)
class ValuationResult:
    """Outcome of an adjust-and-summarize request."""
    batch: AdjustmentBatch
    summary: Optional[ValuationSummary]
    arv: Optional[float] = None
    maximum_allowable_offer: Optional[int] = None

    @property
    def adjusted(self) -> List[AdjustedComp]:
        return list(self.batch.adjusted)

    @property
    def reason(self) -> Optional[str]:
        return EMPTY_COMPARISON_SET if self.summary is None else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "adjusted": [c.to_dict() for c in self.batch.adjusted],
            "skipped": [s.to_dict() for s in self.batch.skipped],
            "summary": self.summary.to_dict() if self.summary else None,
            "reason": self.reason,
            "arv": round(self.arv, 2) if self.arv is not None else None,
            "maximum_allowable_offer": self.maximum_allowable_offer,
        }


# =============================================================================
# Engine
# =============================================================================


class CompValuationEngine:
    """
    Comparable property pipeline.

    Pipeline order:
    1. CRITERIA - Derive (or accept) the search envelope
    2. FILTER - Select and rank candidates, relaxing once if none match
    3. ADJUST - Compute per-comp adjustment vectors
    4. SUMMARIZE - Aggregate adjusted prices into an estimated value

    The engine holds configuration only; every call is independent.
    """

    def __init__(
        self,
        reference_date: date = None,
        defaults: CriteriaDefaults = CriteriaDefaults(),
        rates: AdjustmentRates = DEFAULT_RATES,
        max_selected_comps: int = MAX_SELECTED_COMPS,
        arv_multiplier: float = DEFAULT_ARV_MULTIPLIER,
    ):
        """
        Initialize valuation engine.

        Args:
            reference_date: Reference date for recency windows (default: today)
            defaults: Defaults for derived criteria
            rates: Per-unit adjustment rates
            max_selected_comps: Cap on comps per adjust-and-summarize call
            arv_multiplier: Multiplier for the maximum allowable offer
        """
        self._filter = CandidateFilter(reference_date=reference_date)
        self._defaults = defaults
        self._rates = rates
        self._max_selected_comps = max_selected_comps
        self._arv_multiplier = arv_multiplier

    @property
    def reference_date(self) -> date:
        return self._filter.reference_date

    def default_criteria(self, subject: PropertyRecord) -> CompCriteria:
        """Derive default criteria using this engine's defaults."""
        return derive_default_criteria(subject, self._defaults)

    def find_comps(
        self,
        subject: PropertyRecord,
        pool: Iterable[PropertyRecord],
        criteria: Optional[CompCriteria] = None,
        allow_relaxation: bool = True,
    ) -> CompSearchResult:
        """
        Find comparable properties for a subject.

        Args:
            subject: The property being valued
            pool: Candidate records from the data store
            criteria: Search envelope (default: derived from the subject)
            allow_relaxation: Retry once with widened bands if nothing matches

        Returns:
            CompSearchResult; an empty candidate set is a valid outcome
        """
        if criteria is None:
            criteria = self.default_criteria(subject)

        pool = list(pool)
        candidates = self._filter.filter_candidates(pool, criteria, subject.location)

        if candidates.is_empty and allow_relaxation:
            logger.info("No comps found for %s, relaxing criteria", subject.id)
            relaxed = relax_criteria(criteria)
            retry = self._filter.filter_candidates(pool, relaxed, subject.location)
            if not retry.is_empty:
                return CompSearchResult(candidates=retry, criteria=relaxed, fallback_used=True)

        return CompSearchResult(candidates=candidates, criteria=criteria)

    def adjust_and_summarize(
        self,
        subject: PropertyRecord,
        comps: Sequence[PropertyRecord],
        overrides_by_id: Optional[Mapping[str, Overrides]] = None,
    ) -> ValuationResult:
        """
        Adjust the selected comps and summarise them.

        Incompatible comps are skipped and reported. If nothing remains,
        the result carries no summary and reason EMPTY_COMPARISON_SET.

        Raises:
            InvalidSubjectProperty: if the subject fails validation
            ValidationError: if too many comps are selected or an
                override is malformed
        """
        validate_subject(subject)
        if len(comps) > self._max_selected_comps:
            raise ValidationError(
                "comps",
                f"at most {self._max_selected_comps} comps may be selected, got {len(comps)}",
            )

        batch = adjust_comps(subject, comps, overrides_by_id, self._rates)

        try:
            summary = summarize(batch.adjusted)
        except EmptyComparisonSet:
            logger.info("No comparable comps to summarise for %s", subject.id)
            summary = None

        arv = estimate_arv(c.comp for c in batch.adjusted)

        return ValuationResult(
            batch=batch,
            summary=summary,
            arv=arv,
            maximum_allowable_offer=maximum_allowable_offer(arv, self._arv_multiplier),
        )
