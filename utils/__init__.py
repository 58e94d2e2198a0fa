"""
Utility modules for the comp matching engine.
"""

from .formatting import format_currency, format_signed_currency
from .config import Config

__all__ = ["format_currency", "format_signed_currency", "Config"]
