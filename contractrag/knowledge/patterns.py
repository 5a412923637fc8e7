"""
Built-in vulnerability patterns for Solidity source text.

Each base pattern is a regular expression applied to the whole source
text. Matching is purely textual, so the patterns also work on partial or
syntactically invalid snippets; they are a pre-filter for the LLM audit,
not a verdict.

Each definition includes:
- A unique id and category
- Severity level (critical, high, medium, low)
- The regular expression source
- Finding description and remediation advice
- Examples of code the pattern is meant to catch
- CWE reference
"""

from __future__ import annotations

import re

from .models import (
    GasOptimizationPattern,
    PatternCategory,
    PatternDefinition,
    Severity,
)

# ---------------------------------------------------------------------------
# Base vulnerability patterns
# ---------------------------------------------------------------------------

BASE_PATTERN_DEFINITIONS: tuple[PatternDefinition, ...] = (
    PatternDefinition(
        id="reentrancy",
        name="Reentrancy Vulnerability",
        severity=Severity.CRITICAL,
        category=PatternCategory.REENTRANCY,
        pattern=r"\.call\s*\{[^}]{0,256}\}\s*\([^)]{0,256}\)|\.call\s*\([^)]{0,256}\)(?!\s*\.)",
        description="External calls that can be exploited for reentrancy attacks",
        recommendation="Use checks-effects-interactions pattern and reentrancy guards",
        examples=[
            'victim.call{value: amount}("")',
            'target.call(abi.encodeWithSignature("transfer(address,uint256)", to, value))',
        ],
        cwe="CWE-841",
    ),
    PatternDefinition(
        id="unchecked_return",
        name="Unchecked Return Values",
        severity=Severity.HIGH,
        category=PatternCategory.UNCHECKED_CALL,
        pattern=(
            r"\.call\s*\([^)]{0,256}\)\s*;|\.send\s*\([^)]{0,256}\)\s*;"
            r"|\.transfer\s*\([^)]{0,256}\)\s*;"
        ),
        description="External calls without checking return values",
        recommendation="Always check return values of external calls",
        examples=["target.call(data);", "payable(to).send(amount);"],
        cwe="CWE-252",
    ),
    PatternDefinition(
        id="integer_overflow",
        name="Integer Overflow/Underflow",
        severity=Severity.HIGH,
        category=PatternCategory.INTEGER_OVERFLOW,
        pattern=r"(?:uint\d*|int\d*)\s+\w+\s*[+\-*/]=?\s*\w+(?!\s*;)",
        description="Arithmetic operations without overflow protection",
        recommendation="Use SafeMath library or Solidity 0.8+ built-in overflow checks",
        examples=["balance += amount", "totalSupply = totalSupply * multiplier"],
        cwe="CWE-190",
    ),
    PatternDefinition(
        id="tx_origin",
        name="tx.origin Usage",
        severity=Severity.MEDIUM,
        category=PatternCategory.ACCESS_CONTROL,
        pattern=r"tx\.origin",
        description="Using tx.origin for authorization is vulnerable to phishing attacks",
        recommendation=(
            "Authorize against the immediate caller (msg.sender) instead of "
            "the transaction origin (tx.origin) for access control"
        ),
        examples=["require(tx.origin == owner)"],
        cwe="CWE-346",
    ),
    PatternDefinition(
        id="unprotected_selfdestruct",
        name="Unprotected selfdestruct",
        severity=Severity.CRITICAL,
        category=PatternCategory.SELFDESTRUCT,
        pattern=r"selfdestruct\s*\([^)]{0,256}\)",
        description="selfdestruct without proper access control",
        recommendation="Add proper access control modifiers to selfdestruct functions",
        examples=["selfdestruct(payable(owner))"],
        cwe="CWE-284",
    ),
    PatternDefinition(
        id="delegatecall_to_untrusted",
        name="Delegatecall to Untrusted Contract",
        severity=Severity.CRITICAL,
        category=PatternCategory.DELEGATECALL,
        pattern=r"\.delegatecall\s*\([^)]{0,256}\)",
        description="Using delegatecall with untrusted contracts",
        recommendation="Avoid delegatecall to user-controlled addresses",
        examples=["target.delegatecall(data)"],
        cwe="CWE-829",
    ),
    PatternDefinition(
        id="timestamp_dependence",
        name="Timestamp Dependence",
        severity=Severity.MEDIUM,
        category=PatternCategory.TIMESTAMP_DEPENDENCE,
        pattern=r"block\.timestamp|\bnow(?!\w)",
        description="Relying on block.timestamp for critical logic",
        recommendation="Avoid using block.timestamp for critical decisions",
        examples=["require(block.timestamp > deadline)"],
        cwe="CWE-829",
    ),
    PatternDefinition(
        id="missing_input_validation",
        name="Missing Input Validation",
        severity=Severity.MEDIUM,
        category=PatternCategory.INPUT_VALIDATION,
        # Windows are bounded: the zero-address check must sit in the first
        # 512 characters of the body.
        pattern=(
            r"function\s+\w+\s*\((?=[^)]{0,256}address)[^)]{0,256}\)\s*(?:public|external)[^{]{0,256}\{"
            r"(?![^}]{0,512}?require\s*\([^};]{0,128}!=\s*address\(0\))"
        ),
        description="Functions accepting addresses without zero-address checks",
        recommendation="Add input validation for address parameters",
        examples=["function transfer(address to, uint256 amount)"],
        cwe="CWE-20",
    ),
)


# ---------------------------------------------------------------------------
# Gas optimization patterns
# ---------------------------------------------------------------------------

GAS_OPTIMIZATION_PATTERNS: tuple[GasOptimizationPattern, ...] = (
    GasOptimizationPattern(
        id="array_length_in_loop",
        matcher=re.compile(r"for\s*\((?=[^)]{0,256}\.length)[^)]{0,256}\)"),
        issue="Array length called in loop condition",
        optimization="Cache array length before loop",
    ),
    GasOptimizationPattern(
        id="repeated_storage_read",
        matcher=re.compile(r"storage\s+\w+\s*=\s*\w+\[\w+\]"),
        issue="Repeated storage reads",
        optimization="Cache storage variables in memory",
    ),
    GasOptimizationPattern(
        id="memory_string_literal",
        matcher=re.compile(r'string\s+memory\s+\w+\s*=\s*"[^"]{0,1024}"'),
        issue="String literals in memory",
        optimization="Use bytes32 for short strings",
    ),
)


# ---------------------------------------------------------------------------
# Static guidance
# ---------------------------------------------------------------------------

BEST_PRACTICES: tuple[str, ...] = (
    "Follow checks-effects-interactions pattern",
    "Use reentrancy guards for external calls",
    "Validate all inputs, especially addresses",
    "Emit events for all state changes",
    "Use latest Solidity version",
    "Implement proper access control",
    "Handle failed external calls gracefully",
    "Avoid using tx.origin for authorization",
    "Use pull over push for payments",
    "Implement circuit breakers for emergency stops",
)

GAS_OPTIMIZATION_TIPS: tuple[str, ...] = (
    "Pack struct variables efficiently",
    "Use uint256 instead of smaller uints when possible",
    "Cache array lengths in loops",
    "Use calldata instead of memory for read-only function parameters",
    "Batch operations when possible",
    "Use events instead of storage for data that doesn't need to be accessed on-chain",
)


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------

_DEFINITIONS_BY_ID: dict[str, PatternDefinition] = {d.id: d for d in BASE_PATTERN_DEFINITIONS}


def get_pattern_definition(pattern_id: str) -> PatternDefinition | None:
    """Look up a base pattern definition by id."""
    return _DEFINITIONS_BY_ID.get(pattern_id)


def get_definitions_by_severity(severity: Severity | str) -> list[PatternDefinition]:
    """Return all base definitions with the given severity."""
    sev = Severity(severity)
    return [d for d in BASE_PATTERN_DEFINITIONS if d.severity is sev]


def get_definitions_by_category(category: PatternCategory | str) -> list[PatternDefinition]:
    """Return all base definitions in the given category."""
    cat = PatternCategory(category)
    return [d for d in BASE_PATTERN_DEFINITIONS if d.category is cat]
