"""Offline processing of vulnerability datasets into an enhanced catalog."""

from .processor import (
    ENHANCED_PATTERN_TEMPLATES,
    SYNTHETIC_EXAMPLES,
    DatasetProcessor,
    build_enhanced_patterns,
    extract_relevant_code,
)

__all__ = [
    "DatasetProcessor",
    "ENHANCED_PATTERN_TEMPLATES",
    "SYNTHETIC_EXAMPLES",
    "build_enhanced_patterns",
    "extract_relevant_code",
]
