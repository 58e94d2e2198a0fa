"""
Comp Matching Engine - Core Business Logic

This module provides the canonical comparable property pipeline:
1. Criteria Normalizer (default search envelope from the subject)
2. Candidate Filter (bands, radius, recency, price band; ranked and capped)
3. Feature Adjuster (per-comp adjustment vectors with analyst overrides)
4. Valuation Aggregator (adjusted price range and estimated value)

The property store is a collaborator: it supplies snapshots and keeps
saved adjustments, but holds no engine logic.
"""

from .comp_engine import (
    PropertyRecord,
    PropertyType,
    ListingStatus,
    Coordinates,
    Band,
    CompCriteria,
    CandidateSet,
    AdjustmentCategory,
    AdjustmentVector,
    AdjustedComp,
    ValuationSummary,
    CompEngineError,
    ValidationError,
    InvalidSubjectProperty,
    IncompatibleComparison,
    EmptyComparisonSet,
    derive_default_criteria,
    filter_candidates,
    compute_adjustment,
    summarize,
    AdjustmentSession,
    CompValuationEngine,
)

# Property Store
from .property_store import (
    InMemoryPropertyStore,
    PropertyNotFound,
    SavedAdjustment,
    get_property_store,
)

__all__ = [
    # Comp Engine
    "PropertyRecord",
    "PropertyType",
    "ListingStatus",
    "Coordinates",
    "Band",
    "CompCriteria",
    "CandidateSet",
    "AdjustmentCategory",
    "AdjustmentVector",
    "AdjustedComp",
    "ValuationSummary",
    "CompEngineError",
    "ValidationError",
    "InvalidSubjectProperty",
    "IncompatibleComparison",
    "EmptyComparisonSet",
    "derive_default_criteria",
    "filter_candidates",
    "compute_adjustment",
    "summarize",
    "AdjustmentSession",
    "CompValuationEngine",
    # Property Store
    "InMemoryPropertyStore",
    "PropertyNotFound",
    "SavedAdjustment",
    "get_property_store",
]
