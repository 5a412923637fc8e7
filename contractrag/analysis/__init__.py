"""Deterministic pre-analysis: pattern matching, heuristics, scoring and formatting.

Quick start::

    from contractrag.analysis import ContractAnalyzer
    from contractrag.knowledge import KnowledgeBase

    analyzer = ContractAnalyzer(KnowledgeBase())
    result, prompt_block = analyzer.augmentation(source)
"""

from .analyzer import ContractAnalyzer, PreAnalysis
from .engine import (
    analyze_contract,
    build_result,
    check_source_size,
    contextual_recommendations,
    find_gas_hints,
    match_patterns,
)
from .formatter import dedupe_preserving_order, format_for_model, render_summary
from .heuristics import HEURISTIC_DETECTORS, HeuristicDetector
from .models import AnalysisResult, FindingSet, MatchReport, PatternMatch, ScoreResult
from .scoring import round_half_up, score

__all__ = [
    "AnalysisResult",
    "ContractAnalyzer",
    "FindingSet",
    "HEURISTIC_DETECTORS",
    "HeuristicDetector",
    "MatchReport",
    "PatternMatch",
    "PreAnalysis",
    "ScoreResult",
    "analyze_contract",
    "build_result",
    "check_source_size",
    "contextual_recommendations",
    "dedupe_preserving_order",
    "find_gas_hints",
    "format_for_model",
    "match_patterns",
    "render_summary",
    "round_half_up",
    "score",
]
