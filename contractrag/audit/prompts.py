"""Instruction template for the LLM audit request."""

AUDIT_SYSTEM_PROMPT = (
    "You are a professional smart contract security auditor with access to a "
    "comprehensive vulnerability database. Provide detailed, accurate security analysis."
)

_RESPONSE_FORMAT = """{
  "stars": number,
  "summary": "concise summary mentioning dataset confidence if applicable",
  "vulnerabilities": {
    "critical": ["array of critical issues with specific details"],
    "high": ["array of high severity issues with remediation"],
    "medium": ["array of medium severity issues"],
    "low": ["array of low severity issues"]
  },
  "recommendations": ["array of specific remediation steps with code examples"],
  "gasOptimizations": ["array of gas optimization suggestions"]
}"""


def build_audit_prompt(augmentation: str, catalog_size: int) -> str:
    """Wrap a pre-analysis block into the full audit request.

    Args:
        augmentation: Output of ``format_for_model`` for the contract.
        catalog_size: Size of the catalog the pre-analysis used.

    Returns:
        The user message for the chat completion request.
    """
    return f"""You are an expert smart contract security auditor with access to a comprehensive vulnerability database enhanced with real-world contract analysis.

{augmentation}

Please provide a comprehensive security audit that:
1. Validates and refines the pre-detected vulnerability patterns
2. Identifies any additional security issues missed by pattern matching
3. Provides specific remediation steps with code examples where possible
4. Considers the confidence level from our dataset analysis
5. Rates the overall security from 0-5 stars with these strict criteria:
   - 5 stars: Zero vulnerabilities, follows all best practices
   - 4 stars: No critical/high issues, minor medium issues only
   - 3 stars: No critical issues but has high severity issues
   - 2 stars: Has critical vulnerabilities or multiple high severity issues
   - 1 star: Multiple critical and high severity vulnerabilities
   - 0 stars: Fundamental security flaws, unsafe for deployment

IMPORTANT: Consider that patterns with higher dataset confidence (from our {catalog_size}-pattern knowledge base) should be weighted more heavily in your analysis.

Return your analysis in this JSON format:
{_RESPONSE_FORMAT}"""
