"""Pattern matching engine.

Applies every catalog pattern and every heuristic detector to a source
text and groups the descriptions of the rules that fired by severity.
Catalog rules are reported first, in catalog order, then detectors in
their declared order, so output is deterministic for a given catalog.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..constants import MAX_SOURCE_BYTES
from ..core.exceptions import InputTooLargeError
from ..knowledge.catalog import Catalog
from ..knowledge.models import GasOptimizationPattern, Severity
from ..knowledge.patterns import GAS_OPTIMIZATION_PATTERNS
from .formatter import dedupe_preserving_order
from .heuristics import HEURISTIC_DETECTORS, HeuristicDetector
from .models import AnalysisResult, FindingSet, MatchReport, PatternMatch
from .scoring import score

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("contractrag.events")


def check_source_size(text: str, limit: int = MAX_SOURCE_BYTES) -> int:
    """Reject source texts larger than ``limit`` bytes (UTF-8).

    Returns:
        The encoded size of the text.

    Raises:
        InputTooLargeError: If the text is larger than the limit.
    """
    size = len(text.encode("utf-8"))
    if size > limit:
        event_logger.warning(
            "Input rejected",
            extra={"event": "input_rejected", "size": size, "limit": limit},
        )
        raise InputTooLargeError(size, limit)
    return size


def match_patterns(
    text: str,
    catalog: Catalog,
    detectors: Sequence[HeuristicDetector] = HEURISTIC_DETECTORS,
    max_source_bytes: int = MAX_SOURCE_BYTES,
) -> MatchReport:
    """Run the catalog and the heuristic detectors over ``text``.

    A rule that fires adds its description once to the bucket of its
    severity, and its raw match count to the report.

    Args:
        text: Source text.
        catalog: The catalog snapshot to match against.
        detectors: Heuristic detectors run after the catalog.
        max_source_bytes: Size limit for ``text``.

    Raises:
        InputTooLargeError: If ``text`` exceeds ``max_source_bytes``.
    """
    check_source_size(text, max_source_bytes)

    buckets: dict[Severity, list[str]] = {sev: [] for sev in Severity}
    matches: list[PatternMatch] = []

    for pattern in catalog.patterns:
        count = pattern.count_matches(text)
        if count:
            buckets[pattern.severity].append(pattern.description)
            matches.append(
                PatternMatch(
                    rule_id=pattern.id,
                    severity=pattern.severity,
                    description=pattern.description,
                    recommendation=pattern.recommendation,
                    count=count,
                    origin=pattern.origin,
                    prevalence=pattern.prevalence,
                )
            )

    for detector in detectors:
        count = detector.run(text)
        if count:
            buckets[detector.severity].append(detector.description)
            matches.append(
                PatternMatch(
                    rule_id=detector.id,
                    severity=detector.severity,
                    description=detector.description,
                    recommendation=detector.recommendation,
                    count=count,
                    heuristic=True,
                )
            )

    return MatchReport(findings=FindingSet.from_buckets(buckets), matches=tuple(matches))


def find_gas_hints(
    text: str, patterns: Iterable[GasOptimizationPattern] = GAS_OPTIMIZATION_PATTERNS
) -> tuple[str, ...]:
    """Static optimization suggestions for every gas pattern that fires."""
    return tuple(p.optimization for p in patterns if p.fires(text))


def contextual_recommendations(
    text: str, catalog: Catalog, max_source_bytes: int = MAX_SOURCE_BYTES
) -> list[str]:
    """Recommendations of the firing rules, deduplicated in first-seen order.

    Raises:
        InputTooLargeError: If ``text`` exceeds ``max_source_bytes``.
    """
    report = match_patterns(text, catalog, max_source_bytes=max_source_bytes)
    return dedupe_preserving_order(report.recommendations)


def build_result(report: MatchReport, gas_hints: Iterable[str], catalog: Catalog) -> AnalysisResult:
    """Score a match report and assemble the analysis result."""
    scored = score(report.matches, report.findings)
    return AnalysisResult(
        findings=report.findings,
        gas_hints=tuple(gas_hints),
        security_score=scored.security_score,
        confidence=scored.confidence,
        dataset_match_count=scored.dataset_match_count,
        catalog_size=catalog.size,
        enhanced=catalog.enhanced,
        matched_rules=tuple(m.rule_id for m in report.matches),
    )


def analyze_contract(
    text: str, catalog: Catalog, max_source_bytes: int = MAX_SOURCE_BYTES
) -> AnalysisResult:
    """Analyze a source text against a catalog.

    Args:
        text: Source text, possibly partial or syntactically invalid.
        catalog: The catalog snapshot to match against.
        max_source_bytes: Size limit for ``text``.

    Returns:
        The analysis result.

    Raises:
        InputTooLargeError: If ``text`` exceeds ``max_source_bytes``.
    """
    report = match_patterns(text, catalog, max_source_bytes=max_source_bytes)
    return build_result(report, find_gas_hints(text), catalog)
