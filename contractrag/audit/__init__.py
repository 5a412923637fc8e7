"""LLM audit of smart contracts, seeded with the deterministic pre-analysis."""

from .llm_client import PROVIDERS, LLMClient
from .models import AuditReport, LLMAuditReport, RagAnalysisMetadata, VulnerabilityBuckets
from .prompts import AUDIT_SYSTEM_PROMPT, build_audit_prompt
from .service import ContractAuditor, apply_rating_policy
from .validation import is_solidity_code, validate_contract_code

__all__ = [
    "AUDIT_SYSTEM_PROMPT",
    "AuditReport",
    "ContractAuditor",
    "LLMAuditReport",
    "LLMClient",
    "PROVIDERS",
    "RagAnalysisMetadata",
    "VulnerabilityBuckets",
    "apply_rating_policy",
    "build_audit_prompt",
    "is_solidity_code",
    "validate_contract_code",
]
