"""Facade tying a knowledge base to the matching, scoring and formatting steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..constants import MAX_SOURCE_BYTES
from ..knowledge.loader import KnowledgeBase
from .engine import build_result, find_gas_hints, match_patterns
from .formatter import dedupe_preserving_order, format_for_model, render_summary
from .models import AnalysisResult, MatchReport

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("contractrag.events")


@dataclass(frozen=True)
class PreAnalysis:
    """Everything derived from one source text and one catalog snapshot."""

    result: AnalysisResult
    recommendations: tuple[str, ...]
    augmentation: str


class ContractAnalyzer:
    """Runs the deterministic pre-analysis against a knowledge base.

    Every call takes one catalog snapshot up front, so a concurrent
    ``KnowledgeBase.reload`` never mixes two catalogs within a single
    result. The analyzer holds no other state and may be shared between
    threads.
    """

    def __init__(self, knowledge_base: KnowledgeBase, max_source_bytes: int = MAX_SOURCE_BYTES) -> None:
        self.knowledge_base = knowledge_base
        self.max_source_bytes = max_source_bytes

    def _run(self, source: str) -> tuple[MatchReport, AnalysisResult]:
        catalog = self.knowledge_base.catalog
        report = match_patterns(source, catalog, max_source_bytes=self.max_source_bytes)
        result = build_result(report, find_gas_hints(source), catalog)

        logger.debug(
            f"Analyzed {len(source)} chars: score {result.security_score}, "
            f"{result.findings.total} findings"
        )
        event_logger.info(
            "Analysis completed",
            extra={
                "event": "analysis_completed",
                "catalog_size": result.catalog_size,
                "enhanced": result.enhanced,
                "security_score": result.security_score,
                "confidence": result.confidence,
                "dataset_matches": result.dataset_match_count,
            },
        )
        return report, result

    def analyze(self, source: str) -> AnalysisResult:
        """Analyze a source text.

        Raises:
            InputTooLargeError: If the source exceeds ``max_source_bytes``.
        """
        return self._run(source)[1]

    def recommendations(self, source: str) -> list[str]:
        """Deduplicated recommendations of every rule firing on ``source``."""
        report = match_patterns(
            source, self.knowledge_base.catalog, max_source_bytes=self.max_source_bytes
        )
        return dedupe_preserving_order(report.recommendations)

    def prepare(self, source: str) -> PreAnalysis:
        """Analyze ``source`` and render the prompt augmentation block."""
        report, result = self._run(source)
        recommendations = dedupe_preserving_order(report.recommendations)
        return PreAnalysis(
            result=result,
            recommendations=tuple(recommendations),
            augmentation=format_for_model(source, result, recommendations),
        )

    def augmentation(self, source: str) -> tuple[AnalysisResult, str]:
        """Analysis result and prompt augmentation block for ``source``."""
        prepared = self.prepare(source)
        return prepared.result, prepared.augmentation

    def summary(self, source: str) -> str:
        """Human-readable pre-analysis summary for ``source``."""
        result = self.analyze(source)
        return render_summary(result, self.knowledge_base.best_practices)
