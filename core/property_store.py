"""
Property Data Store

Provides property snapshots for comp searches and keeps analysts' saved
adjustments for later report rendering.

This is an in-memory implementation - in production, this would be
backed by the application's relational database. The comp engine only
reads snapshots from it and never depends on its internals.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .comp_engine import AdjustedComp, AdjustmentVector, PropertyRecord, ValidationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SavedAdjustment:
    """Final adjustment vector for one (subject, comp) pair."""
    subject_id: str
    comp_id: str
    adjustments: AdjustmentVector
    adjusted_price: int
    saved_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "subject_id": self.subject_id,
            "comp_id": self.comp_id,
            "adjustments": self.adjustments.to_dict(),
            "adjusted_price": self.adjusted_price,
            "saved_at": self.saved_at.isoformat(),
        }


class PropertyNotFound(LookupError):
    """Raised when a property id is not in the store."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property {property_id} not found")


class InMemoryPropertyStore:
    """
    Dictionary-backed property store.

    Records are immutable snapshots, so handing them to the comp engine
    without copying is safe.
    """

    def __init__(self, records: Iterable[PropertyRecord] = ()):
        """Initialize the store with optional seed records."""
        self._records: Dict[str, PropertyRecord] = {}
        self._saved: Dict[Tuple[str, str], SavedAdjustment] = {}
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: PropertyRecord) -> None:
        """Insert or replace a record."""
        self._records[record.id] = record

    def get_property(self, property_id: str) -> Optional[PropertyRecord]:
        """Fetch a record by id, or None."""
        return self._records.get(str(property_id))

    def require_property(self, property_id: str) -> PropertyRecord:
        """
        Fetch a record by id.

        Raises:
            PropertyNotFound: if the id is unknown
        """
        record = self.get_property(property_id)
        if record is None:
            raise PropertyNotFound(str(property_id))
        return record

    def search(
        self,
        street: str = "",
        city: str = "",
        state: str = "",
        postal_code: str = "",
    ) -> List[PropertyRecord]:
        """
        Search by address fields, case-insensitive.

        Street matches on substring; city, state and postal code exactly.
        Empty arguments are ignored.
        """
        def matches(record: PropertyRecord) -> bool:
            if street and street.lower() not in record.street.lower():
                return False
            if city and city.lower() != record.city.lower():
                return False
            if state and state.lower() != record.state.lower():
                return False
            if postal_code and postal_code.strip() != record.postal_code.strip():
                return False
            return True

        return sorted(
            (r for r in self._records.values() if matches(r)),
            key=lambda r: r.id,
        )

    def candidate_pool(self) -> List[PropertyRecord]:
        """Snapshot of every record, for the candidate filter."""
        return list(self._records.values())

    def save_adjustments(
        self,
        subject_id: str,
        adjusted_comps: Sequence[AdjustedComp],
    ) -> List[SavedAdjustment]:
        """
        Persist final adjustment vectors keyed by (subject id, comp id).

        Raises:
            PropertyNotFound: if the subject or any comp is unknown
            ValidationError: if no adjustments are given
        """
        if not adjusted_comps:
            raise ValidationError("adjustments", "no adjustments provided")

        self.require_property(subject_id)
        for adjusted in adjusted_comps:
            self.require_property(adjusted.comp.id)

        saved_at = datetime.now()
        saved = []
        for adjusted in adjusted_comps:
            record = SavedAdjustment(
                subject_id=subject_id,
                comp_id=adjusted.comp.id,
                adjustments=adjusted.adjustments,
                adjusted_price=adjusted.adjusted_price,
                saved_at=saved_at,
            )
            self._saved[(subject_id, adjusted.comp.id)] = record
            saved.append(record)

        logger.info("Saved %d adjustments for subject %s", len(saved), subject_id)
        return saved

    def get_saved_adjustments(self, subject_id: str) -> List[SavedAdjustment]:
        """Saved adjustments for a subject, ordered by comp id."""
        return sorted(
            (s for (sid, _), s in self._saved.items() if sid == subject_id),
            key=lambda s: s.comp_id,
        )

    def load_json(self, path: Path) -> int:
        """
        Load records from a JSON array file.

        Records that fail validation are logged and skipped.

        Returns:
            Number of records loaded
        """
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)

        loaded = 0
        for row in rows:
            try:
                self.add(PropertyRecord.from_dict(row))
                loaded += 1
            except ValidationError as e:
                logger.warning("Skipping property %s: %s", row.get("id"), e)
        logger.info("Loaded %d properties from %s", loaded, path)
        return loaded


# Singleton instance for the application
_property_store: Optional[InMemoryPropertyStore] = None


def get_property_store() -> InMemoryPropertyStore:
    """Get the property store singleton."""
    global _property_store
    if _property_store is None:
        _property_store = InMemoryPropertyStore()
    return _property_store
