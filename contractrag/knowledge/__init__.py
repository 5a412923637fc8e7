"""Vulnerability pattern catalog and knowledge base loader.

Quick start::

    from contractrag.knowledge import KnowledgeBase

    kb = KnowledgeBase(enhanced_source="data/enhanced-knowledge-base.json")
    print(kb.size, kb.enhanced)
"""

from .catalog import Catalog, compile_definitions, compile_pattern
from .loader import (
    CatalogSource,
    EnhancedCatalogLoad,
    KnowledgeBase,
    KnowledgeBaseInfo,
    load_enhanced_catalog,
)
from .models import (
    DatasetExample,
    DatasetStatistics,
    EnhancedCatalogArtifact,
    EnhancedPatternEntry,
    GasOptimizationPattern,
    PatternCategory,
    PatternDefinition,
    PatternOrigin,
    Severity,
    VulnerabilityPattern,
)
from .patterns import (
    BASE_PATTERN_DEFINITIONS,
    BEST_PRACTICES,
    GAS_OPTIMIZATION_PATTERNS,
    GAS_OPTIMIZATION_TIPS,
    get_definitions_by_category,
    get_definitions_by_severity,
    get_pattern_definition,
)

__all__ = [
    "BASE_PATTERN_DEFINITIONS",
    "BEST_PRACTICES",
    "Catalog",
    "CatalogSource",
    "DatasetExample",
    "DatasetStatistics",
    "EnhancedCatalogArtifact",
    "EnhancedCatalogLoad",
    "EnhancedPatternEntry",
    "GAS_OPTIMIZATION_PATTERNS",
    "GAS_OPTIMIZATION_TIPS",
    "GasOptimizationPattern",
    "KnowledgeBase",
    "KnowledgeBaseInfo",
    "PatternCategory",
    "PatternDefinition",
    "PatternOrigin",
    "Severity",
    "VulnerabilityPattern",
    "compile_definitions",
    "compile_pattern",
    "get_definitions_by_category",
    "get_definitions_by_severity",
    "get_pattern_definition",
    "load_enhanced_catalog",
]
