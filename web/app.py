"""
FastAPI application for the comp matching engine.

Exposes the two engine request shapes (find comps, adjust & summarize)
as JSON endpoints, plus property lookup and adjustment saving backed by
the property store collaborator.
"""

import logging
import os
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core import InMemoryPropertyStore, PropertyNotFound, get_property_store
from core.comp_engine import (
    AdjustedComp,
    Band,
    CompCriteria,
    CompValuationEngine,
    IncompatibleComparison,
    ListingStatus,
    PropertyRecord,
    PropertyType,
    ValidationError,
    adjust_comps,
)
from utils.config import Config
from utils.formatting import format_currency, format_signed_currency


logger = logging.getLogger(__name__)


# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

# Debug mode - NEVER enabled in production
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true" and not IS_PRODUCTION

API_VERSION = "1.0.0"


# =============================================================================
# API Request/Response Models
# =============================================================================

class PropertyInput(BaseModel):
    """Inline property snapshot."""
    id: str = "subject"
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price: int
    bedrooms: int
    bathrooms: float
    square_feet: int
    lot_size: Optional[float] = None
    year_built: Optional[int] = None
    property_type: str
    status: str = "active"
    days_on_market: Optional[int] = None
    garage_spaces: Optional[int] = None
    has_basement: Optional[bool] = None
    sale_date: Optional[str] = None
    listed_date: Optional[str] = None

    def to_record(self) -> PropertyRecord:
        return PropertyRecord.from_dict(self.model_dump())


class CompInput(PropertyInput):
    """Inline comp snapshot; the id keys its overrides."""
    id: str


class BandInput(BaseModel):
    """Inclusive band; a null bound is unbounded."""
    min: Optional[float] = None
    max: Optional[float] = None

    def to_band(self) -> Band:
        return Band(minimum=self.min, maximum=self.max)


class CriteriaInput(BaseModel):
    """Overrides applied on top of the subject's default criteria."""
    radius_miles: Optional[float] = None
    bedrooms: Optional[BandInput] = None
    bathrooms: Optional[BandInput] = None
    square_feet: Optional[BandInput] = None
    year_built: Optional[BandInput] = None
    property_type: Optional[str] = None  # a type, "same" or "any"
    statuses: Optional[List[str]] = None
    recency_months: Optional[int] = None
    price_band_percent: Optional[float] = None
    max_results: Optional[int] = None
    require_garage: Optional[bool] = None
    require_basement: Optional[bool] = None


class SubjectRequest(BaseModel):
    """Subject given by store id or inline."""
    subject_property_id: Optional[str] = None
    subject: Optional[PropertyInput] = None


class FindCompsRequest(SubjectRequest):
    """Request body for comp search."""
    criteria: Optional[CriteriaInput] = None
    allow_relaxation: bool = True


class AdjustRequest(SubjectRequest):
    """Request body for adjust & summarize."""
    comp_ids: List[str] = []
    comps: List[CompInput] = []
    overrides: Dict[str, Dict[str, int]] = {}


class SaveAdjustmentsRequest(BaseModel):
    """Request body for saving final adjustments."""
    subject_property_id: str
    adjustments: Dict[str, Dict[str, int]]


# =============================================================================
# Request Helpers
# =============================================================================

def resolve_subject(request: SubjectRequest, store: InMemoryPropertyStore) -> PropertyRecord:
    """Load the subject from the store or build it from the inline body."""
    if request.subject is not None:
        return request.subject.to_record()
    if request.subject_property_id:
        return store.require_property(request.subject_property_id)
    raise ValidationError("subject", "subject_property_id or subject is required")


def apply_criteria_input(
    base: CompCriteria,
    criteria_input: Optional[CriteriaInput],
    subject: PropertyRecord,
) -> CompCriteria:
    """Layer request criteria over the derived defaults."""
    if criteria_input is None:
        return base

    changes = {}
    for name in ("bedrooms", "bathrooms", "square_feet", "year_built"):
        band = getattr(criteria_input, name)
        if band is not None:
            changes[name] = band.to_band()

    for name in (
        "radius_miles",
        "recency_months",
        "price_band_percent",
        "max_results",
        "require_garage",
        "require_basement",
    ):
        value = getattr(criteria_input, name)
        if value is not None:
            changes[name] = value

    if criteria_input.property_type is not None:
        requested = criteria_input.property_type.strip().lower()
        if requested == "any":
            changes["property_type"] = None
        elif requested == "same":
            changes["property_type"] = subject.property_type
        else:
            property_type = PropertyType.from_string(requested)
            if property_type is None:
                raise ValidationError("property_type", f"unknown value {criteria_input.property_type!r}")
            changes["property_type"] = property_type

    if criteria_input.statuses is not None:
        statuses = set()
        for value in criteria_input.statuses:
            status = ListingStatus.from_string(value)
            if status is None:
                raise ValidationError("statuses", f"unknown value {value!r}")
            statuses.add(status)
        changes["statuses"] = frozenset(statuses)

    return base.with_changes(**changes)


def adjusted_comp_payload(adjusted: AdjustedComp) -> dict:
    """Adjusted comp with display strings for each category."""
    payload = adjusted.to_dict()
    payload["display"] = {
        "adjustments": {
            k: format_signed_currency(v) for k, v in adjusted.adjustments.to_dict().items()
        },
        "total_adjustment": format_signed_currency(adjusted.total_adjustment),
        "original_price": format_currency(adjusted.comp.price),
        "adjusted_price": format_currency(adjusted.adjusted_price),
    }
    return payload


def create_app(
    store: Optional[InMemoryPropertyStore] = None,
    config: Optional[Config] = None,
    engine: Optional[CompValuationEngine] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()

    if store is None:
        store = get_property_store()
        if not len(store) and config.properties_path.exists():
            store.load_json(config.properties_path)

    engine = engine or CompValuationEngine(
        defaults=config.criteria_defaults(),
        max_selected_comps=config.max_selected_comps,
        arv_multiplier=config.arv_multiplier,
    )

    app = FastAPI(
        title="Comp Matching Engine",
        description="Comparable property matching, adjustment and valuation",
        version=API_VERSION,
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=DEBUG_MODE,
    )

    # Healthcheck endpoints: no dependencies, no IO
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint."""
        return {"status": "healthy"}

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=422,
            content={"error": exc.message, "field": exc.field},
        )

    @app.exception_handler(IncompatibleComparison)
    async def incompatible_handler(request: Request, exc: IncompatibleComparison):
        return JSONResponse(
            status_code=422,
            content={"error": exc.reason, "comp_id": exc.comp_id},
        )

    @app.exception_handler(PropertyNotFound)
    async def not_found_handler(request: Request, exc: PropertyNotFound):
        return JSONResponse(
            status_code=404,
            content={"error": str(exc), "property_id": exc.property_id},
        )

    @app.get("/api/properties/search")
    def search_properties(
        street: str = "",
        city: str = "",
        state: str = "",
        postal_code: str = "",
    ):
        """Search properties by address fields."""
        if not (street or city or state or postal_code):
            raise HTTPException(
                status_code=400,
                detail="At least one search parameter is required",
            )
        records = store.search(street=street, city=city, state=state, postal_code=postal_code)
        return {"properties": [r.to_dict() for r in records], "count": len(records)}

    @app.get("/api/properties/{property_id}")
    def get_property(property_id: str):
        """Fetch a single property snapshot."""
        return store.require_property(property_id).to_dict()

    @app.post("/api/comps/criteria")
    def default_criteria(request_data: SubjectRequest):
        """Default comp criteria for a subject."""
        subject = resolve_subject(request_data, store)
        return engine.default_criteria(subject).to_dict()

    @app.post("/api/comps/find")
    def find_comps(request_data: FindCompsRequest):
        """
        Find comparable properties.

        Returns:
            - comps ordered by distance, capped at max_results
            - reason "no_matches" when nothing qualifies (not an error)
        """
        subject = resolve_subject(request_data, store)
        criteria = apply_criteria_input(
            engine.default_criteria(subject), request_data.criteria, subject
        )
        result = engine.find_comps(
            subject,
            store.candidate_pool(),
            criteria=criteria,
            allow_relaxation=request_data.allow_relaxation,
        )
        return result.to_dict()

    @app.post("/api/comps/adjust")
    def adjust_selected_comps(request_data: AdjustRequest):
        """
        Adjust the selected comps and summarise them.

        Comps that cannot be compared are listed under "skipped".
        """
        subject = resolve_subject(request_data, store)

        comps = [store.require_property(comp_id) for comp_id in dict.fromkeys(request_data.comp_ids)]
        comps.extend(c.to_record() for c in request_data.comps)
        if not comps:
            raise ValidationError("comps", "at least one comp is required")

        seen = set()
        for comp in comps:
            if comp.id == subject.id:
                raise ValidationError("comps", f"comp id {comp.id!r} is the subject")
            if comp.id in seen:
                raise ValidationError("comps", f"duplicate comp id {comp.id!r}")
            seen.add(comp.id)

        result = engine.adjust_and_summarize(subject, comps, request_data.overrides)

        payload = result.to_dict()
        payload["adjusted"] = [adjusted_comp_payload(c) for c in result.batch.adjusted]
        if result.summary is not None:
            payload["display"] = {
                "estimated_value": format_currency(result.summary.estimated_value),
            }
        return payload

    @app.post("/api/comps/save-adjustments")
    def save_adjustments(request_data: SaveAdjustmentsRequest):
        """Recompute and save final adjustments for later reporting."""
        if not request_data.adjustments:
            raise ValidationError("adjustments", "no adjustments provided")

        subject = store.require_property(request_data.subject_property_id)
        comps = [store.require_property(comp_id) for comp_id in request_data.adjustments]
        batch = adjust_comps(subject, comps, request_data.adjustments)
        saved = store.save_adjustments(subject.id, batch.adjusted) if batch.adjusted else []

        return {
            "message": "Adjustments saved successfully",
            "subject_property_id": subject.id,
            "adjustment_count": len(saved),
            "saved": [s.to_dict() for s in saved],
            "skipped": [s.to_dict() for s in batch.skipped],
        }

    @app.get("/api/comps/saved/{subject_property_id}")
    def saved_adjustments(subject_property_id: str):
        """Saved adjustments for a subject."""
        store.require_property(subject_property_id)
        saved = store.get_saved_adjustments(subject_property_id)
        return {"saved": [s.to_dict() for s in saved], "count": len(saved)}

    @app.get("/api/health")
    def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": API_VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
            "properties_loaded": len(store),
        }

    return app


# Create app instance for uvicorn
app = create_app()
