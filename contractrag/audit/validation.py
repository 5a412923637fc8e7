"""Input checks applied before a contract is sent to the LLM audit."""

import re

from ..core.exceptions import InvalidInputError, NotSolidityCodeError

_PRAGMA = re.compile(
    r"pragma\s+solidity\s+(?:\^|>=|<=|~)?\s*\d+\.\d+(?:\.\d+)?"
    r"|pragma\s+solidity\s+[\d\s^><=.~]+"
)
_CONTRACT_LIKE = re.compile(r"(?:contract|library|interface|abstract\s+contract)\s+\w+")
_SOLIDITY_KEYWORDS = re.compile(
    r"(?:function|mapping|address|uint\d*|bytes\d*|struct|enum|event|modifier)\s+\w+"
)


def is_solidity_code(code: str) -> bool:
    """Whether ``code`` looks like Solidity source.

    Requires a pragma or a contract/library/interface declaration, plus at
    least one Solidity declaration keyword.
    """
    has_header = bool(_PRAGMA.search(code) or _CONTRACT_LIKE.search(code))
    return has_header and bool(_SOLIDITY_KEYWORDS.search(code))


def validate_contract_code(code: str) -> str:
    """Reject empty input and input that is not Solidity.

    Returns:
        The code unchanged.

    Raises:
        InvalidInputError: If the code is empty or blank.
        NotSolidityCodeError: If the code does not look like Solidity.
    """
    if not code or not code.strip():
        raise InvalidInputError("Please provide smart contract code")
    if not is_solidity_code(code):
        raise NotSolidityCodeError(
            "Invalid input: the code does not look like a Solidity smart contract"
        )
    return code
