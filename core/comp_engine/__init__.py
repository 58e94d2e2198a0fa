"""
Comp Engine

Comparable property matching and adjustment pipeline: derives search
criteria from a subject, filters a candidate pool, computes feature
adjustments per comp and aggregates adjusted prices into an estimated
market value.

Every stage is a pure function of its inputs.
"""

from .models import (
    PropertyRecord,
    PropertyType,
    ListingStatus,
    Coordinates,
    Band,
    CompCriteria,
    CandidateSet,
    RankedCandidate,
    AdjustmentCategory,
    AdjustmentVector,
    AdjustedComp,
    AdjustmentBatch,
    SkippedComp,
    ValuationSummary,
    NO_MATCHES,
)
from .errors import (
    CompEngineError,
    ValidationError,
    InvalidSubjectProperty,
    IncompatibleComparison,
    EmptyComparisonSet,
)
from .criteria import CriteriaDefaults, derive_default_criteria, relax_criteria
from .filters import CandidateFilter, filter_candidates, haversine_distance
from .adjustments import (
    AdjustmentRates,
    AdjustmentSession,
    DEFAULT_RATES,
    adjust_comps,
    compute_adjustment,
    default_adjustments,
)
from .valuation import (
    CompSearchResult,
    CompValuationEngine,
    ValuationResult,
    EMPTY_COMPARISON_SET,
    estimate_arv,
    maximum_allowable_offer,
    summarize,
)

__all__ = [
    # Models
    "PropertyRecord",
    "PropertyType",
    "ListingStatus",
    "Coordinates",
    "Band",
    "CompCriteria",
    "CandidateSet",
    "RankedCandidate",
    "AdjustmentCategory",
    "AdjustmentVector",
    "AdjustedComp",
    "AdjustmentBatch",
    "SkippedComp",
    "ValuationSummary",
    "NO_MATCHES",
    # Errors
    "CompEngineError",
    "ValidationError",
    "InvalidSubjectProperty",
    "IncompatibleComparison",
    "EmptyComparisonSet",
    # Criteria Normalizer
    "CriteriaDefaults",
    "derive_default_criteria",
    "relax_criteria",
    # Candidate Filter
    "CandidateFilter",
    "filter_candidates",
    "haversine_distance",
    # Feature Adjuster
    "AdjustmentRates",
    "AdjustmentSession",
    "DEFAULT_RATES",
    "adjust_comps",
    "compute_adjustment",
    "default_adjustments",
    # Valuation Aggregator
    "CompSearchResult",
    "CompValuationEngine",
    "ValuationResult",
    "EMPTY_COMPARISON_SET",
    "estimate_arv",
    "maximum_allowable_offer",
    "summarize",
]

__version__ = "1.0"
