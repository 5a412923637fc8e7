"""Tests for AnalyzerSettings."""

import pytest

from contractrag.config import AnalyzerSettings
from contractrag.constants import CATALOG_FETCH_TIMEOUT, MAX_SOURCE_BYTES
from contractrag.core.exceptions import ConfigurationError

ENV_VARS = [
    "CONTRACTRAG_MAX_SOURCE_BYTES",
    "CONTRACTRAG_ENHANCED_CATALOG",
    "CONTRACTRAG_CATALOG_TIMEOUT",
    "CONTRACTRAG_CATALOG_STALE_DAYS",
    "CONTRACTRAG_EVENT_LOG",
    "CONTRACTRAG_EVENT_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestAnalyzerSettings:
    """Tests for loading settings from the environment."""

    def test_defaults(self, clean_env):
        """Without variables the constants apply."""
        settings = AnalyzerSettings.from_env()
        assert settings.max_source_bytes == MAX_SOURCE_BYTES
        assert settings.enhanced_catalog_source is None
        assert settings.catalog_timeout == CATALOG_FETCH_TIMEOUT

    def test_values_from_env(self, clean_env):
        """Variables override the defaults and are coerced."""
        clean_env.setenv("CONTRACTRAG_MAX_SOURCE_BYTES", "1024")
        clean_env.setenv("CONTRACTRAG_ENHANCED_CATALOG", "data/enhanced-knowledge-base.json")
        clean_env.setenv("CONTRACTRAG_CATALOG_TIMEOUT", "2.5")
        clean_env.setenv("CONTRACTRAG_CATALOG_STALE_DAYS", "0")

        settings = AnalyzerSettings.from_env()
        assert settings.max_source_bytes == 1024
        assert settings.enhanced_catalog_source == "data/enhanced-knowledge-base.json"
        assert settings.catalog_timeout == 2.5
        assert settings.stale_after_days == 0

    def test_empty_catalog_means_none(self, clean_env):
        """An empty catalog variable disables the enhanced catalog."""
        clean_env.setenv("CONTRACTRAG_ENHANCED_CATALOG", "")
        assert AnalyzerSettings.from_env().enhanced_catalog_source is None

    def test_event_log_from_env(self, clean_env):
        """The event log file and level are read from the environment."""
        assert AnalyzerSettings.from_env().event_log_file is None

        clean_env.setenv("CONTRACTRAG_EVENT_LOG", "/var/log/contractrag/events.log")
        clean_env.setenv("CONTRACTRAG_EVENT_LOG_LEVEL", "debug")
        settings = AnalyzerSettings.from_env()
        assert settings.event_log_file == "/var/log/contractrag/events.log"
        assert settings.event_log_level == "DEBUG"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("CONTRACTRAG_MAX_SOURCE_BYTES", "0"),
            ("CONTRACTRAG_MAX_SOURCE_BYTES", "lots"),
            ("CONTRACTRAG_CATALOG_TIMEOUT", "-1"),
            ("CONTRACTRAG_CATALOG_STALE_DAYS", "-5"),
            ("CONTRACTRAG_EVENT_LOG_LEVEL", "loud"),
        ],
    )
    def test_invalid_values(self, clean_env, name, value):
        """Invalid values raise ConfigurationError."""
        clean_env.setenv(name, value)
        with pytest.raises(ConfigurationError):
            AnalyzerSettings.from_env()
