"""Constants and configuration values for ContractRAG.

This module centralizes magic numbers and configuration values
that are used across the codebase for easier maintenance.
"""

import os

# =============================================================================
# Input Limits
# =============================================================================

# Maximum size of a source text accepted for analysis (512KB, UTF-8 encoded)
# Every catalog window is bounded, so matching time grows linearly up to the cap
MAX_SOURCE_BYTES = int(os.environ.get("CONTRACTRAG_MAX_SOURCE_BYTES", 512 * 1024))


# =============================================================================
# Scoring
# =============================================================================

# Weight of a single match per severity
SEVERITY_WEIGHTS: dict[str, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}

# Confidence contributed by a firing rule that carries no prevalence
BASE_PATTERN_CONFIDENCE = 0.5

# Upper bounds of the two scores
MAX_SECURITY_SCORE = 5
MAX_CONFIDENCE = 5.0

# Every two weight units of findings cost one point of security score
WEIGHT_UNITS_PER_POINT = 2


# =============================================================================
# Knowledge Base
# =============================================================================

# Number of built-in base patterns
BASE_CATALOG_SIZE = 8

# Location of the enhanced catalog artifact (file path or http(s) URL)
ENHANCED_CATALOG_SOURCE = os.environ.get("CONTRACTRAG_ENHANCED_CATALOG") or None

# Timeout in seconds for fetching a remote artifact
CATALOG_FETCH_TIMEOUT = float(os.environ.get("CONTRACTRAG_CATALOG_TIMEOUT", 10))

# Artifacts processed longer ago than this are still used but logged as stale
CATALOG_STALE_AFTER_DAYS = int(os.environ.get("CONTRACTRAG_CATALOG_STALE_DAYS", 90))

# Maximum size of an enhanced catalog artifact (5MB)
MAX_CATALOG_ARTIFACT_BYTES = 5 * 1024 * 1024

# File name written by the dataset processor
ENHANCED_CATALOG_FILENAME = "enhanced-knowledge-base.json"


# =============================================================================
# LLM Audit
# =============================================================================

# Minimum number of seconds between two LLM audits
AUDIT_COOLDOWN_SECONDS = float(os.environ.get("CONTRACTRAG_AUDIT_COOLDOWN", 30))

# Default HTTP request timeout in seconds
DEFAULT_REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", 30))

# Completion limits for the audit request
AUDIT_MAX_TOKENS = 2048
AUDIT_TEMPERATURE = 0.1


# =============================================================================
# Server
# =============================================================================

# MCP server port
MCP_DEFAULT_PORT = int(os.environ.get("MCP_PORT", 3000))


# =============================================================================
# Logging
# =============================================================================

# JSON-lines event log (catalog loads, dropped patterns, analyses); unset keeps
# events on the regular stderr log
EVENT_LOG_FILE = os.environ.get("CONTRACTRAG_EVENT_LOG") or None

# Level of the event logger
EVENT_LOG_LEVEL = os.environ.get("CONTRACTRAG_EVENT_LOG_LEVEL", "INFO")
