"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from core.comp_engine import CriteriaDefaults


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    properties_file: Optional[str] = field(
        default_factory=lambda: os.getenv("PROPERTIES_FILE") or None
    )

    # Comp search defaults
    default_radius_miles: float = field(
        default_factory=lambda: float(os.getenv("DEFAULT_RADIUS_MILES", "3.0"))
    )
    default_recency_months: int = field(
        default_factory=lambda: int(os.getenv("DEFAULT_RECENCY_MONTHS", "6"))
    )
    default_price_band_percent: float = field(
        default_factory=lambda: float(os.getenv("DEFAULT_PRICE_BAND_PERCENT", "20.0"))
    )
    default_max_results: int = field(
        default_factory=lambda: int(os.getenv("DEFAULT_MAX_RESULTS", "5"))
    )

    # Valuation
    max_selected_comps: int = field(
        default_factory=lambda: int(os.getenv("MAX_SELECTED_COMPS", "5"))
    )
    arv_multiplier: float = field(
        default_factory=lambda: float(os.getenv("ARV_MULTIPLIER", "0.7"))
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def properties_path(self) -> Path:
        """Seed file for the property store."""
        if self.properties_file:
            return Path(self.properties_file)
        return Path(self.data_dir) / "properties.json"

    def criteria_defaults(self) -> CriteriaDefaults:
        """Defaults for derived comp criteria."""
        return CriteriaDefaults(
            radius_miles=self.default_radius_miles,
            recency_months=self.default_recency_months,
            price_band_percent=self.default_price_band_percent,
            max_results=self.default_max_results,
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "data_dir": self.data_dir,
            "properties_file": self.properties_file,
            "default_radius_miles": self.default_radius_miles,
            "default_recency_months": self.default_recency_months,
            "default_price_band_percent": self.default_price_band_percent,
            "default_max_results": self.default_max_results,
            "max_selected_comps": self.max_selected_comps,
            "arv_multiplier": self.arv_multiplier,
        }
