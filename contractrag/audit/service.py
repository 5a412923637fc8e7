"""LLM audit of a contract, backed by the deterministic pre-analysis."""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from ..analysis.analyzer import ContractAnalyzer
from ..core.exceptions import LLMResponseError, RateLimitError
from ..core.rate_limiter import RateLimiter, create_audit_limiter
from .llm_client import LLMClient
from .models import AuditReport, LLMAuditReport, RagAnalysisMetadata
from .prompts import AUDIT_SYSTEM_PROMPT, build_audit_prompt
from .validation import validate_contract_code

logger = logging.getLogger(__name__)


def apply_rating_policy(report: LLMAuditReport) -> LLMAuditReport:
    """Cap the star rating by the severities the LLM reported.

    Any critical issue caps the rating at 2, any high issue at 3, and more
    than two critical issues force 0.
    """
    stars = report.stars
    critical = len(report.vulnerabilities.critical)
    high = len(report.vulnerabilities.high)

    if critical > 0:
        stars = min(stars, 2)
    if high > 0:
        stars = min(stars, 3)
    if critical > 2:
        stars = 0

    if stars == report.stars:
        return report
    return report.model_copy(update={"stars": stars})


class ContractAuditor:
    """Runs an LLM audit of a contract at most once per cooldown period."""

    def __init__(
        self,
        analyzer: ContractAnalyzer,
        client: LLMClient | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.client = client or LLMClient()
        self.limiter = limiter or create_audit_limiter()

    async def audit(self, code: str) -> AuditReport:
        """Audit ``code`` with the LLM.

        Input is validated first, then the cooldown is checked. A failed
        request does not start a cooldown.

        Raises:
            InvalidInputError: If the code is empty.
            NotSolidityCodeError: If the code is not Solidity.
            RateLimitError: If the previous audit was too recent.
            InputTooLargeError: If the code exceeds the analyzer size limit.
            ClientError: If the LLM request or its answer is unusable.
        """
        validate_contract_code(code)

        wait = self.limiter.try_acquire()
        if wait > 0:
            raise RateLimitError(
                f"Please wait {wait:.0f} seconds before the next audit", retry_after=wait
            )

        try:
            return await self._run_audit(code)
        except Exception:
            self.limiter.reset()
            raise

    async def _run_audit(self, code: str) -> AuditReport:
        prepared = self.analyzer.prepare(code)
        result = prepared.result
        prompt = build_audit_prompt(prepared.augmentation, result.catalog_size)

        raw = await self.client.complete_json(AUDIT_SYSTEM_PROMPT, prompt)
        try:
            report = LLMAuditReport.model_validate(raw)
        except PydanticValidationError as e:
            raise LLMResponseError(
                f"LLM answer does not match the audit schema: {e.error_count()} error(s)"
            ) from e

        rated = apply_rating_policy(report)
        if rated.stars != report.stars:
            logger.info(f"Audit rating capped from {report.stars} to {rated.stars}")

        return AuditReport(
            **rated.model_dump(),
            rag_analysis=RagAnalysisMetadata(
                detected_patterns=result.dataset_match_count,
                confidence_score=result.confidence,
                knowledge_base_matches=list(prepared.recommendations),
            ),
            pre_analysis=result,
        )
