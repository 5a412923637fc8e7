"""Security score and confidence arithmetic.

The formulas are heuristic and are kept literally as the product defines
them; tests pin the arithmetic, not a statistical model.

- weighted issues = sum over firing rules of match count x severity weight
  (critical=4, high=3, medium=2, low=1)
- security score = clamp(5 - floor(weighted / 2), 0, 5)
- confidence: each firing enhanced rule with a prevalence adds that
  prevalence and counts as a dataset match; every other firing rule adds
  0.5. With at least one dataset match the sum is normalised by
  (dataset matches + critical findings + high findings) and scaled to 5;
  otherwise the raw sum is used. Both are capped at 5 and rounded half-up
  to one decimal.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from ..constants import (
    BASE_PATTERN_CONFIDENCE,
    MAX_CONFIDENCE,
    MAX_SECURITY_SCORE,
    WEIGHT_UNITS_PER_POINT,
)
from .models import FindingSet, PatternMatch, ScoreResult


def round_half_up(value: float, digits: int = 1) -> float:
    """Round halves up (0.25 -> 0.3) instead of to the nearest even digit."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def weighted_issues(matches: Iterable[PatternMatch]) -> int:
    return sum(m.count * m.severity.weight for m in matches)


def security_score(total_weighted_issues: int) -> int:
    """Five points minus one per two weight units, floored at zero."""
    score = MAX_SECURITY_SCORE - total_weighted_issues // WEIGHT_UNITS_PER_POINT
    return max(0, min(MAX_SECURITY_SCORE, score))


def confidence(matches: Iterable[PatternMatch], findings: FindingSet) -> tuple[float, int]:
    """Compute the unrounded confidence and the dataset match count."""
    confidence_sum = 0.0
    dataset_matches = 0

    for match in matches:
        if match.counts_as_dataset_match:
            dataset_matches += 1
            confidence_sum += match.prevalence or 0.0
        else:
            confidence_sum += BASE_PATTERN_CONFIDENCE

    if dataset_matches > 0:
        surface = dataset_matches + len(findings.critical) + len(findings.high)
        value = min(confidence_sum / surface * MAX_CONFIDENCE, MAX_CONFIDENCE)
    else:
        value = min(confidence_sum, MAX_CONFIDENCE)

    return value, dataset_matches


def score(matches: Iterable[PatternMatch], findings: FindingSet) -> ScoreResult:
    """Derive the security score and confidence from the firing rules.

    Args:
        matches: Rules that fired, with their raw match counts.
        findings: The finding set produced by the same matching pass.

    Returns:
        The score result; confidence is rounded to one decimal.
    """
    matches = list(matches)
    total = weighted_issues(matches)
    value, dataset_matches = confidence(matches, findings)

    return ScoreResult(
        security_score=security_score(total),
        confidence=round_half_up(value, 1),
        dataset_match_count=dataset_matches,
        weighted_issues=total,
    )
