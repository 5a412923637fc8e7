"""Text rendering of analysis results.

``format_for_model`` builds the prompt augmentation block handed to the
LLM caller. It is a pure function of its inputs: the same source, result
and recommendations always produce byte-identical output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..knowledge.models import Severity
from .models import AnalysisResult

SECTION_KNOWLEDGE_BASE = "KNOWLEDGE BASE"
SECTION_FINDINGS = "PRE-ANALYSIS FINDINGS"
SECTION_GAS = "GAS OPTIMIZATIONS"
SECTION_RECOMMENDATIONS = "CONTEXTUAL RECOMMENDATIONS"
SECTION_SOURCE = "CONTRACT SOURCE"

_NONE = "- none"


def dedupe_preserving_order(items: Iterable[str]) -> list[str]:
    """Drop exact duplicates, keeping the first occurrence of each string."""
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _header(title: str) -> str:
    return f"=== {title} ==="


def format_for_model(
    source: str, result: AnalysisResult, recommendations: Sequence[str]
) -> str:
    """Render an analysis result into the prompt augmentation block.

    Args:
        source: The analyzed source text, included verbatim.
        result: The analysis result for ``source``.
        recommendations: Contextual recommendations; duplicates are removed.

    Returns:
        The text block, with the five section headers in fixed order.
    """
    lines = [
        _header(SECTION_KNOWLEDGE_BASE),
        f"Catalog size: {result.catalog_size}",
        f"Enhanced: {'yes' if result.enhanced else 'no'}",
        f"Dataset matches: {result.dataset_match_count}",
        f"Security score: {result.security_score}/5",
        f"Confidence: {result.confidence:.1f}/5",
        "",
        _header(SECTION_FINDINGS),
    ]

    for severity in Severity:
        descriptions = result.findings.bucket(severity)
        lines.append(f"{severity.value.upper()} ({len(descriptions)}):")
        if descriptions:
            lines.extend(f"- {d}" for d in descriptions)
        else:
            lines.append(_NONE)

    lines.extend(["", _header(SECTION_GAS)])
    if result.gas_hints:
        lines.extend(f"- {hint}" for hint in result.gas_hints)
    else:
        lines.append(_NONE)

    lines.extend(["", _header(SECTION_RECOMMENDATIONS)])
    unique = dedupe_preserving_order(recommendations)
    if unique:
        lines.extend(f"{i}. {rec}" for i, rec in enumerate(unique, 1))
    else:
        lines.append(_NONE)

    lines.extend(["", _header(SECTION_SOURCE), source])
    return "\n".join(lines)


def render_summary(
    result: AnalysisResult, best_practices: Sequence[str] = (), practice_limit: int = 3
) -> str:
    """Human-readable pre-analysis summary shown next to the source."""
    lines = ["Smart Contract Security Pre-Analysis", ""]

    if result.enhanced:
        lines.append(f"🔬 Analysis enhanced with {result.catalog_size} patterns from dataset")
        lines.append(
            f"📊 Dataset matches: {result.dataset_match_count} | "
            f"Confidence: {result.confidence:.1f}/5"
        )
    else:
        lines.append("ℹ️  Using base patterns. Run the dataset processor for enhanced analysis.")
    lines.append("")

    total = result.findings.total
    if total == 0:
        lines.append("✅ No obvious vulnerabilities detected in static analysis.")
    else:
        lines.append(f"⚠️  Found {total} potential security issues:")
        for severity in Severity:
            count = len(result.findings.bucket(severity))
            if count:
                lines.append(f"- {severity.value.upper()}: {count} issues")
    lines.append("")

    if result.gas_hints:
        lines.extend([f"⛽ {len(result.gas_hints)} gas optimization opportunities identified.", ""])

    lines.append(f"Security score: {result.security_score}/5")

    if best_practices:
        lines.extend(["", "Recommendations:"])
        if result.enhanced and result.dataset_match_count > 0:
            lines.append("🎯 Dataset-validated patterns detected")
        lines.extend(
            f"{i}. {practice}" for i, practice in enumerate(best_practices[:practice_limit], 1)
        )

    return "\n".join(lines)
