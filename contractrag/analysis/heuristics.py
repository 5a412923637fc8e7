"""Hand-written structural checks that a single regular expression cannot express.

Each detector is a presence test for a triggering token plus a
co-occurrence test in some context (same statement, same line, same
function body or whole text). They work on the raw text, line by line,
without parsing, so they also run on partial or invalid snippets. They
are deliberately coarse and lean towards false positives: the call/reset
ordering check, for instance, compares statement positions and knows
nothing about helper functions, loops or branches.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ..knowledge.models import PatternCategory, Severity

# ---------------------------------------------------------------------------
# Token expressions
# ---------------------------------------------------------------------------

# External call idioms: .call(...), .call{value: x}(...), .call.value(x)(...),
# .send(...), .transfer(...)
_EXTERNAL_CALL = re.compile(
    r"\.(?:call|send|transfer)\b\s*(?:\{[^}]{0,256}\}\s*)?(?:\.value\s*\([^)]{0,256}\)\s*)?\("
)

# Zeroing, decrementing or deleting a mapping entry, e.g. balances[msg.sender] = 0
_STATE_RESET = re.compile(
    r"\b\w+\s*(?:\[[^\]]{0,256}\]\s*)+(?:=\s*0\b|-=)|\bdelete\s+\w+\s*\["
)

_FUNCTION_DECLARATION = re.compile(
    r"\bfunction\b\s*(\w*)\s*\(|\b(fallback|receive)\s*\(\s*\)\s*external\b"
)

_VISIBLE = re.compile(r"\b(?:public|external)\b")
_READ_ONLY = re.compile(r"\b(?:view|pure)\b")

_ACCESS_GUARD = re.compile(
    r"\bonly[A-Z_]\w*"
    r"|require\s*\(\s*(?:msg\.sender|tx\.origin|_msgSender\(\s*\))\s*=="
    r"|require\s*\(\s*\w+\s*==\s*(?:msg\.sender|tx\.origin|_msgSender\(\s*\))"
    r"|\bif\s*\(\s*(?:msg\.sender|_msgSender\(\s*\))\s*!="
    r"|\b_check(?:Owner|Role)\s*\("
    r"|\bhasRole\s*\("
    r"|\brequiresAuth\b|\bauth\b"
)

_CRITICAL_ACTION = re.compile(
    r"\bselfdestruct\s*\(|\bsuicide\s*\("
    r"|\.delegatecall\s*\("
    r"|\b_?owner\s*=(?!=)"
    r"|address\s*\(\s*this\s*\)\s*\.balance"
    r"|\b_?mint\s*\("
    r"|\bupgradeTo\w*\s*\("
)

_SENSITIVE_NAME = re.compile(
    r"^(?:kill|destroy|destruct|set_?owner|change_?owner|transfer_?ownership"
    r"|set_?admin|upgrade\w*|pause|unpause|mint\w*|emergency\w*|sweep\w*|drain\w*)$",
    re.IGNORECASE,
)

_BRANCH = re.compile(r"\b(?:if|require|assert|while)\s*\(|\?")
_TIMESTAMP = re.compile(r"block\.timestamp|\bnow\b")
_BLOCK_NUMBER = re.compile(r"block\.number")

_CONTRACT_BALANCE = re.compile(r"address\s*\(\s*this\s*\)\s*\.balance|\bthis\.balance")
_STRICT_EQUALITY = re.compile(r"[=!]=")

_DELEGATECALL = re.compile(r"\.delegatecall\b")
_ETHER_EXIT = re.compile(
    r"\.transfer\s*\(|\.send\s*\(|\.call\s*\{[^}]{0,256}value|\.call\.value|withdraw|selfdestruct"
)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Statement:
    """A ``;``-separated piece of a line."""

    line: int
    index: int
    text: str


@dataclass(frozen=True)
class FunctionBody:
    """A function declaration and the text window that belongs to it.

    Attributes:
        name: Function name; "fallback"/"receive" for the special functions
            and "" for an unnamed legacy fallback.
        header: Text from the declaration up to the opening brace.
        body: Text from the opening brace to the matching closing brace, or
            to the next declaration when braces do not balance.
        line: 1-based line of the declaration.
    """

    name: str
    header: str
    body: str
    line: int


def split_statements(text: str) -> list[Statement]:
    """Split text into statements in source order.

    Lines are split on ``;``; blank pieces are skipped. ``index`` is the
    position in the returned list, so comparing indexes compares source
    order.
    """
    statements: list[Statement] = []
    for line_no, line in enumerate(text.splitlines(), 1):
        for piece in line.split(";"):
            if piece.strip():
                statements.append(Statement(line_no, len(statements), piece))
    return statements


def iter_function_bodies(text: str) -> Iterator[FunctionBody]:
    """Yield every function declaration with its body window.

    Declarations without a body (interfaces, abstract functions) are
    skipped. A body never extends past the next declaration.
    """
    declarations = list(_FUNCTION_DECLARATION.finditer(text))
    line, counted = 1, 0

    for i, match in enumerate(declarations):
        limit = declarations[i + 1].start() if i + 1 < len(declarations) else len(text)
        name = match.group(1) or match.group(2) or ""
        line += text.count("\n", counted, match.start())
        counted = match.start()

        open_brace = text.find("{", match.end(), limit)
        terminator = text.find(";", match.end(), limit)
        if open_brace == -1 or (terminator != -1 and terminator < open_brace):
            continue

        depth = 0
        end = limit
        for pos in range(open_brace, limit):
            char = text[pos]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = pos + 1
                    break

        yield FunctionBody(
            name=name,
            header=text[match.start():open_brace],
            body=text[open_brace:end],
            line=line,
        )


def _is_guarded(function: FunctionBody) -> bool:
    return bool(_ACCESS_GUARD.search(function.header) or _ACCESS_GUARD.search(function.body))


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def detect_call_before_effect(text: str) -> int:
    """Count balance resets that come after an external call.

    Nothing fires when the text has no reset at all.
    """
    first_call: int | None = None
    violations = 0

    for statement in split_statements(text):
        if first_call is not None and _STATE_RESET.search(statement.text):
            violations += 1
        if first_call is None and _EXTERNAL_CALL.search(statement.text):
            first_call = statement.index

    return violations


def detect_unprotected_critical_action(text: str) -> int:
    """Count public/external functions doing something privileged without a guard."""
    flagged = 0
    for function in iter_function_bodies(text):
        if not _VISIBLE.search(function.header) or _READ_ONLY.search(function.header):
            continue
        critical = bool(_CRITICAL_ACTION.search(function.body)) or bool(
            function.name and _SENSITIVE_NAME.match(function.name)
        )
        if critical and not _is_guarded(function):
            flagged += 1
    return flagged


def _count_branch_lines(text: str, token: re.Pattern[str]) -> int:
    return sum(
        1 for line in text.splitlines() if token.search(line) and _BRANCH.search(line)
    )


def detect_timestamp_in_branch(text: str) -> int:
    """Count lines where the block timestamp feeds a branch condition."""
    return _count_branch_lines(text, _TIMESTAMP)


def detect_block_number_in_branch(text: str) -> int:
    """Count lines where the block number feeds a branch condition."""
    return _count_branch_lines(text, _BLOCK_NUMBER)


def detect_delegatecall_without_guard(text: str) -> int:
    """Count function bodies that delegatecall without an access-control check.

    Snippets without any function declaration are treated as one body.
    """
    if not _DELEGATECALL.search(text):
        return 0

    functions = list(iter_function_bodies(text))
    if not functions:
        return 0 if _ACCESS_GUARD.search(text) else 1

    return sum(
        1 for f in functions if _DELEGATECALL.search(f.body) and not _is_guarded(f)
    )


def detect_balance_strict_equality(text: str) -> int:
    """Count statements comparing the contract balance with == or !=."""
    return sum(
        1
        for statement in split_statements(text)
        if _CONTRACT_BALANCE.search(statement.text) and _STRICT_EQUALITY.search(statement.text)
    )


def detect_ether_frozen(text: str) -> int:
    """Fire once when the text delegatecalls but never moves Ether out."""
    if _DELEGATECALL.search(text) and not _ETHER_EXIT.search(text):
        return 1
    return 0


@dataclass(frozen=True)
class HeuristicDetector:
    """A structural check with a fixed severity and finding text."""

    id: str
    name: str
    severity: Severity
    category: PatternCategory
    description: str
    recommendation: str
    detect: Callable[[str], int]
    cwe: str | None = None

    def run(self, text: str) -> int:
        """Number of sites where the detector fires."""
        return self.detect(text)


HEURISTIC_DETECTORS: tuple[HeuristicDetector, ...] = (
    HeuristicDetector(
        id="call_before_effect",
        name="External Call Before State Reset",
        severity=Severity.CRITICAL,
        category=PatternCategory.REENTRANCY,
        description="Reentrancy: external call is made before the balance is reset",
        recommendation=(
            "Reset balances before making external calls "
            "(checks-effects-interactions) or add a reentrancy guard"
        ),
        detect=detect_call_before_effect,
        cwe="CWE-841",
    ),
    HeuristicDetector(
        id="unprotected_critical_action",
        name="Unprotected Critical Action",
        severity=Severity.HIGH,
        category=PatternCategory.ACCESS_CONTROL,
        description="Public or external function performs a privileged action without access control",
        recommendation="Restrict privileged functions with an onlyOwner/role modifier or a msg.sender check",
        detect=detect_unprotected_critical_action,
        cwe="CWE-284",
    ),
    HeuristicDetector(
        id="timestamp_in_branch",
        name="Timestamp in Branch Condition",
        severity=Severity.MEDIUM,
        category=PatternCategory.TIMESTAMP_DEPENDENCE,
        description="Branch condition depends on block.timestamp, which miners can influence",
        recommendation="Do not decide critical branches on block.timestamp; allow for drift or use an oracle",
        detect=detect_timestamp_in_branch,
        cwe="CWE-829",
    ),
    HeuristicDetector(
        id="block_number_in_branch",
        name="Block Number in Branch Condition",
        severity=Severity.MEDIUM,
        category=PatternCategory.BLOCK_NUMBER_DEPENDENCE,
        description="Branch condition depends on block.number, which is predictable",
        recommendation="Avoid deciding critical branches on block.number",
        detect=detect_block_number_in_branch,
        cwe="CWE-829",
    ),
    HeuristicDetector(
        id="delegatecall_without_guard",
        name="Unguarded Delegatecall",
        severity=Severity.CRITICAL,
        category=PatternCategory.DELEGATECALL,
        description="delegatecall is reachable without access control, allowing arbitrary code execution",
        recommendation="Guard delegatecall with access control and only delegate to trusted, fixed targets",
        detect=detect_delegatecall_without_guard,
        cwe="CWE-829",
    ),
    HeuristicDetector(
        id="balance_strict_equality",
        name="Strict Equality on Contract Balance",
        severity=Severity.MEDIUM,
        category=PatternCategory.ETHER_STRICT_EQUALITY,
        description="Strict equality on the contract balance can be broken by forcibly sent Ether",
        recommendation="Compare address(this).balance with >= or <=, or track deposits in a state variable",
        detect=detect_balance_strict_equality,
        cwe="CWE-667",
    ),
    HeuristicDetector(
        id="ether_frozen",
        name="Ether Frozen",
        severity=Severity.HIGH,
        category=PatternCategory.ETHER_FROZEN,
        description="Contract depends on delegatecall and has no own way to send Ether out",
        recommendation="Provide a withdrawal path that does not depend on a delegated library",
        detect=detect_ether_frozen,
        cwe="CWE-400",
    ),
)
