"""Data models for the vulnerability pattern catalog.

Raw pattern definitions (as written in code or shipped in an enhanced
catalog artifact) are pydantic models so they can be validated at the
boundary. Compiled patterns are frozen dataclasses holding the compiled
regular expression and an explicit origin tag.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..constants import SEVERITY_WEIGHTS


class Severity(str, Enum):
    """Severity levels for findings, ordered from most to least severe."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Weight of one match of this severity in the security score."""
        return SEVERITY_WEIGHTS[self.value]


class PatternOrigin(str, Enum):
    """Where a pattern came from."""

    BASE = "base"
    ENHANCED = "enhanced"


class PatternCategory(str, Enum):
    """Vulnerability categories shared by base and enhanced patterns."""

    REENTRANCY = "reentrancy"
    UNCHECKED_CALL = "unchecked_call"
    INTEGER_OVERFLOW = "integer_overflow"
    ACCESS_CONTROL = "access_control"
    SELFDESTRUCT = "selfdestruct"
    DELEGATECALL = "delegatecall"
    TIMESTAMP_DEPENDENCE = "timestamp_dependence"
    INPUT_VALIDATION = "input_validation"
    BLOCK_NUMBER_DEPENDENCE = "block_number_dependence"
    ETHER_STRICT_EQUALITY = "ether_strict_equality"
    ETHER_FROZEN = "ether_frozen"
    OTHER = "other"


class PatternDefinition(BaseModel):
    """An uncompiled pattern as stored in code or in a catalog artifact.

    Attributes:
        id: Unique stable key within a catalog.
        name: Human-readable name.
        severity: Severity of a match.
        pattern: Regular expression source, applied to the full text.
        description: Finding text added to the severity bucket on a match.
        recommendation: Remediation advice.
        examples: Code samples the pattern is meant to catch.
        cwe: Optional CWE reference such as "CWE-841".
        prevalence: Dataset-derived weight in [0, 1]; only enhanced
            entries carry one.
        category: Vulnerability category.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    severity: Severity
    pattern: str = Field(min_length=1)
    description: str
    recommendation: str
    examples: list[str] = Field(default_factory=list)
    cwe: str | None = None
    prevalence: float | None = Field(default=None, ge=0.0, le=1.0)
    category: PatternCategory = PatternCategory.OTHER


@dataclass(frozen=True)
class VulnerabilityPattern:
    """A compiled vulnerability pattern.

    Matches are counted, not deduplicated by location: every
    non-overlapping match of ``matcher`` in the text counts once.
    """

    id: str
    name: str
    severity: Severity
    matcher: re.Pattern[str]
    description: str
    recommendation: str
    origin: PatternOrigin = PatternOrigin.BASE
    category: PatternCategory = PatternCategory.OTHER
    cwe: str | None = None
    prevalence: float | None = None
    examples: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_enhanced(self) -> bool:
        return self.origin is PatternOrigin.ENHANCED

    def count_matches(self, text: str) -> int:
        """Number of non-overlapping matches of this pattern in ``text``."""
        return sum(1 for _ in self.matcher.finditer(text))


@dataclass(frozen=True)
class GasOptimizationPattern:
    """A lower-stakes optimization check with a static suggestion."""

    id: str
    matcher: re.Pattern[str]
    issue: str
    optimization: str

    def fires(self, text: str) -> bool:
        return self.matcher.search(text) is not None


class DatasetStatistics(BaseModel):
    """Aggregate statistics of the dataset an enhanced catalog came from."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_contracts: int = Field(default=0, ge=0, alias="totalContracts")
    vulnerability_distribution: dict[str, int] = Field(
        default_factory=dict, alias="vulnerabilityDistribution"
    )
    processed_date: datetime | None = Field(default=None, alias="processedDate")


class EnhancedPatternEntry(PatternDefinition):
    """A pattern entry of an enhanced catalog artifact; prevalence is required."""

    prevalence: float = Field(ge=0.0, le=1.0)


class DatasetExample(BaseModel):
    """A labelled code excerpt collected by the dataset processor."""

    id: str
    type: str
    severity: Severity
    code: str
    description: str
    fix: str | None = None
    source: str


class EnhancedCatalogArtifact(BaseModel):
    """The JSON document produced by the offline dataset processor."""

    model_config = ConfigDict(populate_by_name=True)

    patterns: list[EnhancedPatternEntry]
    examples: list[DatasetExample] = Field(default_factory=list)
    statistics: DatasetStatistics = Field(default_factory=DatasetStatistics)
