"""Pydantic models for pattern matching and scoring results.

All models are immutable: a result is created fresh for each analysis
call and never changed after it is returned.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from ..knowledge.models import PatternOrigin, Severity


class FindingSet(BaseModel):
    """Finding descriptions grouped by severity.

    Each firing rule contributes one description to the bucket of its
    severity, however often it matched.
    """

    model_config = ConfigDict(frozen=True)

    critical: tuple[str, ...] = ()
    high: tuple[str, ...] = ()
    medium: tuple[str, ...] = ()
    low: tuple[str, ...] = ()

    @classmethod
    def from_buckets(cls, buckets: Mapping[Severity, Iterable[str]]) -> FindingSet:
        return cls(**{sev.value: tuple(buckets.get(sev, ())) for sev in Severity})

    def bucket(self, severity: Severity | str) -> tuple[str, ...]:
        return getattr(self, Severity(severity).value)

    @property
    def total(self) -> int:
        return sum(len(self.bucket(sev)) for sev in Severity)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def as_dict(self) -> dict[str, list[str]]:
        """Plain mapping of severity name to descriptions, most severe first."""
        return {sev.value: list(self.bucket(sev)) for sev in Severity}


@dataclass(frozen=True)
class PatternMatch:
    """A rule (catalog pattern or heuristic detector) that fired."""

    rule_id: str
    severity: Severity
    description: str
    recommendation: str
    count: int
    origin: PatternOrigin = PatternOrigin.BASE
    prevalence: float | None = None
    heuristic: bool = False

    @property
    def counts_as_dataset_match(self) -> bool:
        """Enhanced rules with a non-zero prevalence feed the dataset confidence."""
        return self.origin is PatternOrigin.ENHANCED and bool(self.prevalence)


@dataclass(frozen=True)
class MatchReport:
    """Findings of one matching pass plus the raw per-rule counts."""

    findings: FindingSet
    matches: tuple[PatternMatch, ...]

    @property
    def match_counts(self) -> dict[str, int]:
        return {m.rule_id: m.count for m in self.matches}

    @property
    def recommendations(self) -> list[str]:
        """Recommendations of the firing rules, in firing order, with repeats."""
        return [m.recommendation for m in self.matches]


class ScoreResult(BaseModel):
    """Security score and confidence derived from a match report."""

    model_config = ConfigDict(frozen=True)

    security_score: int = Field(ge=0, le=5)
    confidence: float = Field(ge=0.0, le=5.0)
    dataset_match_count: int = Field(ge=0)
    weighted_issues: int = Field(default=0, ge=0)


class AnalysisResult(BaseModel):
    """Complete deterministic pre-analysis of one source text.

    Attributes:
        findings: Finding descriptions grouped by severity.
        gas_hints: Optimization suggestions, in catalog order.
        security_score: Integer in [0, 5]; 5 means nothing fired.
        confidence: Float in [0, 5], rounded to one decimal.
        dataset_match_count: Number of firing enhanced patterns.
        catalog_size: Size of the effective catalog used.
        enhanced: Whether the enhanced catalog was loaded.
        matched_rules: Ids of the rules that fired, in firing order.
    """

    model_config = ConfigDict(frozen=True)

    findings: FindingSet = Field(default_factory=FindingSet)
    gas_hints: tuple[str, ...] = ()
    security_score: int = Field(default=5, ge=0, le=5)
    confidence: float = Field(default=0.0, ge=0.0, le=5.0)
    dataset_match_count: int = Field(default=0, ge=0)
    catalog_size: int = Field(default=0, ge=0)
    enhanced: bool = False
    matched_rules: tuple[str, ...] = ()
