"""Pydantic models for LLM audit reports."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..analysis.models import AnalysisResult


class VulnerabilityBuckets(BaseModel):
    """Issues reported by the LLM, grouped by severity."""

    critical: list[str] = Field(default_factory=list)
    high: list[str] = Field(default_factory=list)
    medium: list[str] = Field(default_factory=list)
    low: list[str] = Field(default_factory=list)


class LLMAuditReport(BaseModel):
    """The JSON document the LLM is asked to return."""

    model_config = ConfigDict(populate_by_name=True)

    stars: float = Field(ge=0, le=5)
    summary: str
    vulnerabilities: VulnerabilityBuckets
    recommendations: list[str] = Field(default_factory=list)
    gas_optimizations: list[str] = Field(default_factory=list, alias="gasOptimizations")


class RagAnalysisMetadata(BaseModel):
    """Deterministic pre-analysis figures attached to an audit."""

    model_config = ConfigDict(populate_by_name=True)

    detected_patterns: int = Field(default=0, ge=0, alias="detectedPatterns")
    confidence_score: float = Field(default=0.0, ge=0, le=5, alias="confidenceScore")
    knowledge_base_matches: list[str] = Field(default_factory=list, alias="knowledgeBaseMatches")


class AuditReport(LLMAuditReport):
    """An LLM audit after the rating policy, with the pre-analysis attached."""

    rag_analysis: RagAnalysisMetadata = Field(
        default_factory=RagAnalysisMetadata, alias="ragAnalysis"
    )
    pre_analysis: AnalysisResult | None = Field(default=None, alias="preAnalysis")
