"""
Data models for Comp Engine

Defines property snapshots, search criteria, adjustment vectors and
valuation results. Every model is immutable: each recomputation produces
a new value rather than mutating an existing one.
"""

import math
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import ValidationError


def round_half_up(value: float, step: int = 1) -> int:
    """Round to the nearest multiple of step, halves away from zero."""
    scaled = abs(value) / step
    rounded = int(math.floor(scaled + 0.5)) * step
    return rounded if value >= 0 else -rounded


# =============================================================================
# Enumerations
# =============================================================================


class PropertyType(Enum):
    """
    Property type classification.

    Comps are matched on exact type unless the criteria allow any type.
    """
    SINGLE_FAMILY = "single-family"
    MULTI_FAMILY = "multi-family"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"
    LAND = "land"
    COMMERCIAL = "commercial"

    @classmethod
    def from_string(cls, value: str) -> Optional["PropertyType"]:
        """Convert string to PropertyType, case-insensitive."""
        normalised = value.lower().strip().replace("_", "-").replace(" ", "-")
        normalised = _PROPERTY_TYPE_ALIASES.get(normalised, normalised)
        for member in cls:
            if member.value == normalised:
                return member
        return None


_PROPERTY_TYPE_ALIASES = {
    "single-family-home": "single-family",
    "house": "single-family",
    "condominium": "condo",
    "townhome": "townhouse",
    "town-house": "townhouse",
}


class ListingStatus(Enum):
    """Listing lifecycle status."""
    ACTIVE = "active"
    PENDING = "pending"
    SOLD = "sold"

    @classmethod
    def from_string(cls, value: str) -> Optional["ListingStatus"]:
        """Convert string to ListingStatus, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None

    @property
    def requires_recency(self) -> bool:
        """Sold comps age out; active and pending listings do not."""
        return self is ListingStatus.SOLD


class AdjustmentCategory(Enum):
    """Closed set of adjustment categories."""
    BEDROOMS = "bedrooms"
    BATHROOMS = "bathrooms"
    SQUARE_FEET = "square_feet"
    AGE = "age"
    GARAGE = "garage"
    BASEMENT = "basement"
    LOCATION = "location"
    CONDITION = "condition"
    OTHER = "other"

    @classmethod
    def from_key(cls, key: Union[str, "AdjustmentCategory"]) -> "AdjustmentCategory":
        """Resolve a category from its enum member or string value."""
        if isinstance(key, AdjustmentCategory):
            return key
        normalised = str(key).lower().strip().replace("-", "_")
        if normalised in ("sqft", "squarefeet"):
            normalised = "square_feet"
        for member in cls:
            if member.value == normalised:
                return member
        raise ValidationError(str(key), "unknown adjustment category")


# Categories filled in automatically from feature differences
COMPUTED_CATEGORIES: FrozenSet[AdjustmentCategory] = frozenset({
    AdjustmentCategory.BEDROOMS,
    AdjustmentCategory.BATHROOMS,
    AdjustmentCategory.SQUARE_FEET,
    AdjustmentCategory.AGE,
})


# =============================================================================
# Property Snapshot
# =============================================================================


@dataclass(frozen=True)
class Coordinates:
    """Geographic point in decimal degrees."""
    latitude: float
    longitude: float


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-empty key (snake_case or camelCase)."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return default


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None or value == "" else int(float(value))


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None or value == "" else float(value)


_TRUE_STRINGS = frozenset({"true", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0"})


def _optional_bool(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        normalised = value.strip().lower()
        if normalised in _TRUE_STRINGS:
            return True
        if normalised in _FALSE_STRINGS:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


@dataclass(frozen=True)
class PropertyRecord:
    """
    Read-only snapshot of a listing as held by the property data store.

    Prices are whole currency units. Bathrooms count in half-bath steps.
    """
    # Required fields
    id: str
    price: int
    bedrooms: int
    bathrooms: float
    square_feet: int
    property_type: PropertyType
    status: ListingStatus

    # Address components
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""

    # Location (for distance calculation)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Optional characteristics
    lot_size: Optional[float] = None
    year_built: Optional[int] = None
    days_on_market: Optional[int] = None
    garage_spaces: Optional[int] = None
    has_basement: Optional[bool] = None

    # Dates
    sale_date: Optional[date] = None
    listed_date: Optional[date] = None

    @property
    def location(self) -> Optional[Coordinates]:
        """Coordinates, or None when the record has not been geocoded."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    @property
    def price_per_sqft(self) -> Optional[int]:
        """Price per square foot, rounded to whole units."""
        if self.square_feet <= 0:
            return None
        return round_half_up(self.price / self.square_feet)

    @property
    def has_garage(self) -> bool:
        return bool(self.garage_spaces)

    @property
    def full_address(self) -> str:
        """Construct full address string."""
        parts = [p for p in (self.street, self.city) if p]
        tail = " ".join(p for p in (self.state, self.postal_code) if p)
        if tail:
            parts.append(tail)
        return ", ".join(parts)

    @property
    def recency_date(self) -> Optional[date]:
        """Sale date for sold records, otherwise the listing date."""
        if self.status is ListingStatus.SOLD:
            return self.sale_date
        return self.listed_date

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PropertyRecord":
        """
        Create from the data store's JSON shape.

        Accepts snake_case and camelCase keys.

        Raises:
            ValidationError: when a required field is missing or an enum
                value is not recognised.
        """
        required = {
            "id": _pick(data, "id"),
            "price": _pick(data, "price"),
            "bedrooms": _pick(data, "bedrooms"),
            "bathrooms": _pick(data, "bathrooms"),
            "square_feet": _pick(data, "square_feet", "squareFeet"),
            "property_type": _pick(data, "property_type", "propertyType"),
            "status": _pick(data, "status"),
        }
        for name, value in required.items():
            if value is None:
                raise ValidationError(name, "is required")

        property_type = required["property_type"]
        if not isinstance(property_type, PropertyType):
            property_type = PropertyType.from_string(str(property_type))
            if property_type is None:
                raise ValidationError("property_type", f"unknown value {required['property_type']!r}")

        status = required["status"]
        if not isinstance(status, ListingStatus):
            status = ListingStatus.from_string(str(status))
            if status is None:
                raise ValidationError("status", f"unknown value {required['status']!r}")

        try:
            garage_spaces = _optional_int(_pick(data, "garage_spaces", "garageSpaces"))
            if garage_spaces is None and _optional_bool(_pick(data, "has_garage", "hasGarage")):
                garage_spaces = 1

            return cls(
                id=str(required["id"]),
                price=int(float(required["price"])),
                bedrooms=int(required["bedrooms"]),
                bathrooms=float(required["bathrooms"]),
                square_feet=int(float(required["square_feet"])),
                property_type=property_type,
                status=status,
                street=str(_pick(data, "street", "address", default="")),
                city=str(_pick(data, "city", default="")),
                state=str(_pick(data, "state", default="")),
                postal_code=str(_pick(data, "postal_code", "zipCode", "zip_code", default="")),
                latitude=_optional_float(_pick(data, "latitude", "lat")),
                longitude=_optional_float(_pick(data, "longitude", "lng")),
                lot_size=_optional_float(_pick(data, "lot_size", "lotSize")),
                year_built=_optional_int(_pick(data, "year_built", "yearBuilt")),
                days_on_market=_optional_int(_pick(data, "days_on_market", "daysOnMarket")),
                garage_spaces=garage_spaces,
                has_basement=_optional_bool(_pick(data, "has_basement", "hasBasement")),
                sale_date=_parse_date(_pick(data, "sale_date", "saleDate")),
                listed_date=_parse_date(_pick(data, "listed_date", "listedDate")),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError("property", str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "price": self.price,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "square_feet": self.square_feet,
            "price_per_sqft": self.price_per_sqft,
            "lot_size": self.lot_size,
            "year_built": self.year_built,
            "property_type": self.property_type.value,
            "status": self.status.value,
            "days_on_market": self.days_on_market,
            "garage_spaces": self.garage_spaces,
            "has_basement": self.has_basement,
            "sale_date": self.sale_date.isoformat() if self.sale_date else None,
            "listed_date": self.listed_date.isoformat() if self.listed_date else None,
        }


# =============================================================================
# Search Criteria
# =============================================================================


@dataclass(frozen=True)
class Band:
    """
    Inclusive numeric range.

    A None bound is unbounded on that side; Band() matches everything.
    """
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @classmethod
    def unbounded(cls) -> "Band":
        return cls()

    @property
    def is_bounded(self) -> bool:
        return self.minimum is not None or self.maximum is not None

    @property
    def is_inverted(self) -> bool:
        return (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        )

    def contains(self, value: Optional[float]) -> bool:
        """
        Check value against the band.

        A missing value only passes an unbounded band.
        """
        if not self.is_bounded:
            return True
        if value is None:
            return False
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"min": self.minimum, "max": self.maximum}


@dataclass(frozen=True)
class CompCriteria:
    """
    Search envelope for comparable properties, relative to a subject.

    None on radius_miles, property_type, recency_months or
    price_band_percent means that constraint is not applied. An explicit
    price_range replaces the percentage band around the reference price.
    """
    bedrooms: Band = field(default_factory=Band)
    bathrooms: Band = field(default_factory=Band)
    square_feet: Band = field(default_factory=Band)
    year_built: Band = field(default_factory=Band)

    radius_miles: Optional[float] = None
    property_type: Optional[PropertyType] = None
    statuses: FrozenSet[ListingStatus] = frozenset({ListingStatus.SOLD})
    recency_months: Optional[int] = None

    price_band_percent: Optional[float] = None
    reference_price: Optional[int] = None
    price_range: Optional[Band] = None

    max_results: int = 5
    require_garage: bool = False
    require_basement: bool = False
    exclude_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        """Normalise collections and validate the envelope."""
        object.__setattr__(self, "statuses", frozenset(self.statuses))
        object.__setattr__(self, "exclude_ids", frozenset(str(i) for i in self.exclude_ids))
        self.validate()

    def validate(self) -> None:
        """
        Check every band and scalar constraint.

        Raises:
            ValidationError: naming the first offending field.
        """
        for name in ("bedrooms", "bathrooms", "square_feet", "year_built", "price_range"):
            band = getattr(self, name)
            if band is None:
                continue
            if band.is_inverted:
                raise ValidationError(
                    name, f"minimum {band.minimum} exceeds maximum {band.maximum}"
                )
        if self.radius_miles is not None and self.radius_miles <= 0:
            raise ValidationError("radius_miles", "must be greater than zero")
        if self.price_band_percent is not None and self.price_band_percent < 0:
            raise ValidationError("price_band_percent", "must be non-negative")
        if self.recency_months is not None and self.recency_months < 0:
            raise ValidationError("recency_months", "must be non-negative")
        if self.reference_price is not None and self.reference_price < 0:
            raise ValidationError("reference_price", "must be non-negative")
        if self.max_results < 1:
            raise ValidationError("max_results", "must be at least 1")
        if not self.statuses:
            raise ValidationError("statuses", "at least one status is required")

    @property
    def price_band(self) -> Band:
        """Absolute price band: the explicit range, else derived from the reference price."""
        if self.price_range is not None:
            return self.price_range
        if self.price_band_percent is None or self.reference_price is None:
            return Band.unbounded()
        return Band(
            minimum=self.reference_price * (100 - self.price_band_percent) / 100,
            maximum=self.reference_price * (100 + self.price_band_percent) / 100,
        )

    def with_changes(self, **changes: Any) -> "CompCriteria":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "radius_miles": self.radius_miles,
            "bedrooms": self.bedrooms.to_dict(),
            "bathrooms": self.bathrooms.to_dict(),
            "square_feet": self.square_feet.to_dict(),
            "year_built": self.year_built.to_dict(),
            "property_type": self.property_type.value if self.property_type else None,
            "statuses": sorted(s.value for s in self.statuses),
            "recency_months": self.recency_months,
            "price_band_percent": self.price_band_percent,
            "reference_price": self.reference_price,
            "price_range": self.price_range.to_dict() if self.price_range else None,
            "max_results": self.max_results,
            "require_garage": self.require_garage,
            "require_basement": self.require_basement,
        }


# =============================================================================
# Candidate Selection Result
# =============================================================================

NO_MATCHES = "no_matches"


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate that passed every filter, with its distance to the subject."""
    record: PropertyRecord
    distance_miles: Optional[float]

    @property
    def distance_known(self) -> bool:
        return self.distance_miles is not None

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["distance_miles"] = (
            round(self.distance_miles, 2) if self.distance_miles is not None else None
        )
        data["distance_known"] = self.distance_known
        return data


@dataclass(frozen=True)
class CandidateSet:
    """
    Ordered, capped result of the candidate filter.

    Iterates as PropertyRecord. An empty set is a valid outcome and
    carries reason NO_MATCHES.
    """
    ranked: Tuple[RankedCandidate, ...]
    matched_count: int = 0
    rejections: Mapping[str, int] = field(default_factory=dict)

    def __iter__(self) -> Iterator[PropertyRecord]:
        return (c.record for c in self.ranked)

    def __len__(self) -> int:
        return len(self.ranked)

    def __getitem__(self, index: Union[int, slice]) -> Union[PropertyRecord, List[PropertyRecord]]:
        if isinstance(index, slice):
            return [c.record for c in self.ranked[index]]
        return self.ranked[index].record

    @property
    def records(self) -> List[PropertyRecord]:
        return [c.record for c in self.ranked]

    @property
    def is_empty(self) -> bool:
        return not self.ranked

    @property
    def reason(self) -> Optional[str]:
        return NO_MATCHES if self.is_empty else None

    @property
    def truncated(self) -> bool:
        """Whether matches were dropped by the result cap."""
        return self.matched_count > len(self.ranked)

    def distance_to(self, record_id: str) -> Optional[float]:
        for candidate in self.ranked:
            if candidate.record.id == record_id:
                return candidate.distance_miles
        return None

    def by_status(self) -> Dict[ListingStatus, List[PropertyRecord]]:
        """Group the ordered records by listing status."""
        grouped: Dict[ListingStatus, List[PropertyRecord]] = {s: [] for s in ListingStatus}
        for record in self:
            grouped[record.status].append(record)
        return grouped


# =============================================================================
# Adjustments
# =============================================================================


@dataclass(frozen=True)
class AdjustmentVector:
    """
    Signed monetary delta per adjustment category.

    Every category is always present and defaults to zero, so the total
    is a plain sum over a fixed shape.
    """
    bedrooms: int = 0
    bathrooms: int = 0
    square_feet: int = 0
    age: int = 0
    garage: int = 0
    basement: int = 0
    location: int = 0
    condition: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def get(self, category: Union[str, AdjustmentCategory]) -> int:
        return getattr(self, AdjustmentCategory.from_key(category).value)

    def with_overrides(
        self,
        overrides: Optional[Mapping[Union[str, AdjustmentCategory], int]],
    ) -> "AdjustmentVector":
        """
        Return a new vector with the given categories replaced verbatim.

        Raises:
            ValidationError: on an unknown category or a non-integer amount.
        """
        if not overrides:
            return self
        changes = {}
        for key, amount in overrides.items():
            category = AdjustmentCategory.from_key(key)
            changes[category.value] = _coerce_amount(category.value, amount)
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[Union[str, AdjustmentCategory], int]) -> "AdjustmentVector":
        return cls().with_overrides(data)

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def nonzero(self) -> Dict[str, int]:
        return {k: v for k, v in self.to_dict().items() if v}


def _coerce_amount(name: str, amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError(name, f"adjustment must be a number, got {amount!r}")
    if isinstance(amount, float):
        if not amount.is_integer():
            raise ValidationError(name, f"adjustment must be a whole amount, got {amount}")
        return int(amount)
    return amount


@dataclass(frozen=True)
class AdjustedComp:
    """A comp with its adjustment vector and resulting adjusted price."""
    comp: PropertyRecord
    adjustments: AdjustmentVector

    @property
    def total_adjustment(self) -> int:
        return self.adjustments.total

    @property
    def adjusted_price(self) -> int:
        return self.comp.price + self.total_adjustment

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "comp": self.comp.to_dict(),
            "adjustments": self.adjustments.to_dict(),
            "total_adjustment": self.total_adjustment,
            "adjusted_price": self.adjusted_price,
        }


@dataclass(frozen=True)
class SkippedComp:
    """A comp left out of an adjustment batch, with the reason."""
    comp_id: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"comp_id": self.comp_id, "reason": self.reason}


@dataclass(frozen=True)
class AdjustmentBatch:
    """Outcome of adjusting several comps against one subject."""
    adjusted: Tuple[AdjustedComp, ...]
    skipped: Tuple[SkippedComp, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.adjusted

    @property
    def skipped_ids(self) -> List[str]:
        return [s.comp_id for s in self.skipped]


# =============================================================================
# Valuation
# =============================================================================


@dataclass(frozen=True)
class ValuationSummary:
    """Read-only projection over a set of adjusted comps."""
    adjusted_price_low: int
    adjusted_price_high: int
    estimated_value: int
    sample_size: int

    # Supplementary statistics
    mean_adjusted_price: float = 0.0
    median_adjusted_price: float = 0.0
    average_price_per_sqft: Optional[int] = None

    @property
    def adjusted_price_range(self) -> Tuple[int, int]:
        return (self.adjusted_price_low, self.adjusted_price_high)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "adjusted_price_range": [self.adjusted_price_low, self.adjusted_price_high],
            "estimated_value": self.estimated_value,
            "sample_size": self.sample_size,
            "mean_adjusted_price": round(self.mean_adjusted_price, 2),
            "median_adjusted_price": self.median_adjusted_price,
            "average_price_per_sqft": self.average_price_per_sqft,
        }
