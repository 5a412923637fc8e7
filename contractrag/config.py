"""Configuration model for the analyzer and knowledge base."""

import os
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    CATALOG_FETCH_TIMEOUT,
    CATALOG_STALE_AFTER_DAYS,
    EVENT_LOG_FILE,
    EVENT_LOG_LEVEL,
    MAX_SOURCE_BYTES,
)
from .core.exceptions import ConfigurationError


class AnalyzerSettings(BaseModel):
    """Settings for building a knowledge base and an analyzer."""

    max_source_bytes: int = Field(
        default=MAX_SOURCE_BYTES, gt=0, description="Largest accepted source text (UTF-8 bytes)"
    )
    enhanced_catalog_source: str | None = Field(
        default=None, description="Path or http(s) URL of the enhanced catalog artifact"
    )
    catalog_timeout: float = Field(
        default=CATALOG_FETCH_TIMEOUT, gt=0, description="Timeout for remote artifacts in seconds"
    )
    stale_after_days: int = Field(
        default=CATALOG_STALE_AFTER_DAYS, ge=0, description="Age after which an artifact is stale"
    )
    event_log_file: str | None = Field(
        default=None, description="JSON-lines event log file; None keeps events on stderr"
    )
    event_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Level of the event logger"
    )

    @classmethod
    def from_env(cls) -> "AnalyzerSettings":
        """Load settings from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        try:
            return cls(
                max_source_bytes=os.environ.get("CONTRACTRAG_MAX_SOURCE_BYTES", MAX_SOURCE_BYTES),
                enhanced_catalog_source=os.environ.get("CONTRACTRAG_ENHANCED_CATALOG") or None,
                catalog_timeout=os.environ.get("CONTRACTRAG_CATALOG_TIMEOUT", CATALOG_FETCH_TIMEOUT),
                stale_after_days=os.environ.get(
                    "CONTRACTRAG_CATALOG_STALE_DAYS", CATALOG_STALE_AFTER_DAYS
                ),
                event_log_file=os.environ.get("CONTRACTRAG_EVENT_LOG", EVENT_LOG_FILE) or None,
                event_log_level=os.environ.get("CONTRACTRAG_EVENT_LOG_LEVEL", EVENT_LOG_LEVEL).upper(),
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid analyzer configuration: {e}") from e
