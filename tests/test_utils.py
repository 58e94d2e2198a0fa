"""
Tests for formatting helpers and environment configuration.
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.config import Config
from utils.formatting import format_currency, format_signed_currency


class TestFormatting:

    def test_format_currency(self):
        assert format_currency(447000) == "$447,000"
        assert format_currency(0) == "$0"

    def test_negative_currency(self):
        assert format_currency(-2500) == "-$2,500"

    def test_other_currency(self):
        assert format_currency(1000, "GBP") == "£1,000"
        assert format_currency(1000, "CAD") == "CAD 1,000"

    def test_signed_currency(self):
        assert format_signed_currency(10000) == "+$10,000"
        assert format_signed_currency(-5000) == "-$5,000"
        assert format_signed_currency(0) == "+$0"


class TestConfig:

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "HOST", "PORT", "DEBUG", "LOG_LEVEL", "DATA_DIR", "PROPERTIES_FILE",
            "DEFAULT_RADIUS_MILES", "DEFAULT_RECENCY_MONTHS", "DEFAULT_PRICE_BAND_PERCENT",
            "DEFAULT_MAX_RESULTS", "MAX_SELECTED_COMPS", "ARV_MULTIPLIER",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        config = Config.load()

        assert config.port == 8000
        assert config.debug is False
        assert config.log_level == "INFO"
        assert config.properties_path == Path("./data") / "properties.json"
        assert config.max_selected_comps == 5
        assert config.arv_multiplier == 0.7

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "True")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PROPERTIES_FILE", "/tmp/seed.json")

        config = Config.load()

        assert config.port == 9000
        assert config.debug is True
        assert config.log_level == "DEBUG"
        assert config.properties_path == Path("/tmp/seed.json")

    def test_criteria_defaults(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_RADIUS_MILES", "1.5")
        monkeypatch.setenv("DEFAULT_MAX_RESULTS", "10")

        defaults = Config.load().criteria_defaults()

        assert defaults.radius_miles == 1.5
        assert defaults.max_results == 10
        assert defaults.recency_months == 6

    def test_to_dict(self):
        data = Config.load().to_dict()
        assert data["default_price_band_percent"] == 20.0
        assert "host" in data
