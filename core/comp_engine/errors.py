"""
Exceptions for the Comp Engine.

Empty candidate sets are NOT errors - the filter returns an empty
CandidateSet with a reason code. Only summarising an empty comparison
set raises, because there is no value to report.
"""

from typing import Optional


class CompEngineError(Exception):
    """Base class for all comp engine errors."""

    pass


class ValidationError(CompEngineError, ValueError):
    """Raised when criteria or property data fail validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class InvalidSubjectProperty(ValidationError):
    """Raised when the subject property cannot anchor a comp search."""

    pass


class IncompatibleComparison(CompEngineError):
    """Raised when a comp cannot be meaningfully compared to the subject."""

    def __init__(self, comp_id: str, reason: str):
        self.comp_id = comp_id
        self.reason = reason
        super().__init__(f"Comp {comp_id} is not comparable: {reason}")


class EmptyComparisonSet(CompEngineError):
    """Raised when a valuation is requested over zero adjusted comps."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Cannot summarise an empty comparison set")
