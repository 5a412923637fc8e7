"""
Offline builder for the enhanced catalog artifact.

Walks a smart contract vulnerability dataset, collects labelled code
excerpts per vulnerability category, adds a fixed set of synthetic
examples and derives one enhanced pattern per category, weighted by how
often the category occurs among the processed contracts. The result is
written as ``enhanced-knowledge-base.json`` in the shape the knowledge
base loader consumes.

Usage::

    contractrag-build-kb ./Smart-Contract-Dataset ./data
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..constants import ENHANCED_CATALOG_FILENAME
from ..knowledge.models import (
    DatasetExample,
    DatasetStatistics,
    EnhancedCatalogArtifact,
    EnhancedPatternEntry,
    PatternCategory,
    Severity,
)

logger = logging.getLogger(__name__)

# Lines kept when extracting an excerpt from a real contract
RELEVANT_LINE_MARKERS: tuple[str, ...] = (
    "call(",
    "send(",
    "transfer(",
    "require(",
    "msg.sender",
    "balances[",
)
EXCERPT_MAX_LINES = 10
EXCERPT_MAX_CHARS = 300

# Number of real contracts read per dataset directory
REAL_FILE_LIMIT = 5

# Number of example excerpts attached to each enhanced pattern
PATTERN_EXAMPLE_LIMIT = 3

# Dataset sub-directories holding real vulnerable contracts, per category
REAL_CONTRACT_DIRS: dict[PatternCategory, Path] = {
    PatternCategory.REENTRANCY: Path("reentrancy") / "buggy_contracts",
}


@dataclass(frozen=True)
class SyntheticExample:
    code: str
    description: str
    severity: Severity


SYNTHETIC_EXAMPLES: dict[PatternCategory, tuple[SyntheticExample, ...]] = {
    PatternCategory.REENTRANCY: (
        SyntheticExample(
            code=(
                "function withdraw() public {\n"
                "    uint256 amount = balances[msg.sender];\n"
                '    require(amount > 0, "No funds");\n'
                "\n"
                '    (bool success,) = msg.sender.call{value: amount}("");\n'
                '    require(success, "Transfer failed");\n'
                "\n"
                "    balances[msg.sender] = 0;\n"
                "}"
            ),
            description="Classic reentrancy vulnerability in withdrawal function",
            severity=Severity.CRITICAL,
        ),
        SyntheticExample(
            code=(
                "function emergencyWithdraw() external {\n"
                "    uint256 balance = getUserBalance(msg.sender);\n"
                "    IToken(token).transfer(msg.sender, balance);\n"
                "    userBalances[msg.sender] = 0;\n"
                "}"
            ),
            description="Reentrancy through external token transfer",
            severity=Severity.CRITICAL,
        ),
    ),
    PatternCategory.TIMESTAMP_DEPENDENCE: (
        SyntheticExample(
            code=(
                "function withdraw() public {\n"
                '    require(block.timestamp > deadline, "Too early");\n'
                "    payable(msg.sender).transfer(balance);\n"
                "}"
            ),
            description="Timestamp dependence in withdrawal logic",
            severity=Severity.MEDIUM,
        ),
        SyntheticExample(
            code=(
                "uint256 randomNumber = uint256(keccak256(abi.encodePacked("
                "block.timestamp, block.difficulty))) % 100;"
            ),
            description="Using timestamp for randomness generation",
            severity=Severity.MEDIUM,
        ),
    ),
    PatternCategory.ACCESS_CONTROL: (
        SyntheticExample(
            code=(
                "function withdraw() public {\n"
                "    payable(msg.sender).transfer(address(this).balance);\n"
                "}"
            ),
            description="Missing access control on critical function",
            severity=Severity.CRITICAL,
        ),
        SyntheticExample(
            code=(
                "modifier onlyOwner() {\n"
                '    require(tx.origin == owner, "Not owner");\n'
                "    _;\n"
                "}"
            ),
            description="Using tx.origin instead of msg.sender",
            severity=Severity.HIGH,
        ),
    ),
    PatternCategory.INTEGER_OVERFLOW: (
        SyntheticExample(
            code=(
                "function transfer(address to, uint256 amount) public {\n"
                "    balances[msg.sender] -= amount;\n"
                "    balances[to] += amount;\n"
                "}"
            ),
            description="Integer overflow/underflow in balance operations",
            severity=Severity.HIGH,
        ),
        SyntheticExample(
            code=(
                "uint256 total = price * quantity;\n"
                'require(msg.value >= total, "Insufficient payment");'
            ),
            description="Multiplication overflow in payment calculation",
            severity=Severity.HIGH,
        ),
    ),
    PatternCategory.UNCHECKED_CALL: (
        SyntheticExample(
            code=(
                "function sendPayment(address to, uint256 amount) public {\n"
                '    to.call{value: amount}("");\n'
                "}"
            ),
            description="Unchecked external call return value",
            severity=Severity.HIGH,
        ),
        SyntheticExample(
            code="payable(winner).send(prize);",
            description="Using send() without checking return value",
            severity=Severity.HIGH,
        ),
    ),
}

# Synthetic example id prefix per category
_EXAMPLE_ID_PREFIXES: dict[PatternCategory, str] = {
    PatternCategory.REENTRANCY: "reentrancy_synthetic",
    PatternCategory.TIMESTAMP_DEPENDENCE: "timestamp",
    PatternCategory.ACCESS_CONTROL: "access_control",
    PatternCategory.INTEGER_OVERFLOW: "overflow",
    PatternCategory.UNCHECKED_CALL: "unchecked_call",
}

# Enhanced pattern per category; examples and prevalence are filled in
# from the processed dataset.
ENHANCED_PATTERN_TEMPLATES: dict[PatternCategory, dict[str, str]] = {
    PatternCategory.REENTRANCY: {
        "id": "enhanced_reentrancy",
        "name": "Reentrancy Vulnerability (Dataset Enhanced)",
        "severity": "critical",
        "pattern": (
            r"(\.call\s*\{[^}]{0,256}\}\s*\([^)]{0,256}\)|msg\.sender\.call|address\([^)]{0,256}\)\.call)"
            r"(?!.{0,256}require\s*\(.{0,128}success)"
        ),
        "description": "External calls vulnerable to reentrancy attacks",
        "recommendation": "Use ReentrancyGuard, checks-effects-interactions pattern, or pull payment",
        "cwe": "CWE-841",
    },
    PatternCategory.TIMESTAMP_DEPENDENCE: {
        "id": "enhanced_timestamp",
        "name": "Timestamp Dependence (Dataset Enhanced)",
        "severity": "medium",
        "pattern": r"(block\.timestamp|now(?!\w)).{0,256}(?:require|if|>|<|>=|<=)",
        "description": "Logic dependent on block timestamp manipulation",
        "recommendation": "Use block numbers or external oracles for time-dependent logic",
        "cwe": "CWE-829",
    },
    PatternCategory.ACCESS_CONTROL: {
        "id": "enhanced_access_control",
        "name": "Access Control Issues (Dataset Enhanced)",
        "severity": "high",
        "pattern": (
            r"function\s+\w+\s*\([^)]{0,256}\)\s*(?:public|external)"
            r"(?![^{]{0,256}\b(?:onlyOwner|require\s*\(.{0,128}msg\.sender))"
        ),
        "description": "Functions lacking proper access control",
        "recommendation": "Implement proper access control modifiers and checks",
        "cwe": "CWE-284",
    },
    PatternCategory.INTEGER_OVERFLOW: {
        "id": "enhanced_overflow",
        "name": "Integer Overflow/Underflow (Dataset Enhanced)",
        "severity": "high",
        "pattern": r"(?:uint\d*|int\d*)\s+\w+\s*[+\-*/]=?\s*\w+(?!.{0,256}(?:SafeMath|unchecked))",
        "description": "Arithmetic operations without overflow protection",
        "recommendation": "Use SafeMath library or Solidity 0.8+ built-in checks",
        "cwe": "CWE-190",
    },
    PatternCategory.UNCHECKED_CALL: {
        "id": "enhanced_unchecked_call",
        "name": "Unchecked External Calls (Dataset Enhanced)",
        "severity": "high",
        "pattern": (
            r"(?:\.call\s*\([^)]{0,256}\)|payable\([^)]{0,256}\)\.(?:send|transfer))\s*;"
            r"(?!.{0,256}(?:require\s*\(|success))"
        ),
        "description": "External calls without return value verification",
        "recommendation": "Always check return values of external calls",
        "cwe": "CWE-252",
    },
}


def extract_relevant_code(
    code: str, max_lines: int = EXCERPT_MAX_LINES, max_chars: int = EXCERPT_MAX_CHARS
) -> str:
    """Keep the lines of a contract that touch calls, checks or balances.

    The first ``max_lines`` relevant lines are joined; the excerpt is cut
    to ``max_chars`` characters and marked with ``...`` when longer.
    """
    relevant = [
        line for line in code.split("\n") if any(marker in line for marker in RELEVANT_LINE_MARKERS)
    ]
    excerpt = "\n".join(relevant[:max_lines])
    if len(excerpt) > max_chars:
        return excerpt[:max_chars] + "..."
    return excerpt


def build_enhanced_patterns(
    examples: Sequence[DatasetExample], total_contracts: int
) -> list[EnhancedPatternEntry]:
    """Derive one enhanced pattern per category present in ``examples``.

    Prevalence is the share of processed contracts in the category,
    ``examples_in_category / max(total_contracts, 1)``, capped at 1.
    Categories without a template are skipped.
    """
    patterns: list[EnhancedPatternEntry] = []
    categories = list(dict.fromkeys(e.type for e in examples))

    for category_name in categories:
        try:
            category = PatternCategory(category_name)
        except ValueError:
            logger.debug(f"No enhanced pattern template for category '{category_name}'")
            continue
        template = ENHANCED_PATTERN_TEMPLATES.get(category)
        if template is None:
            continue

        in_category = [e for e in examples if e.type == category_name]
        prevalence = min(len(in_category) / max(total_contracts, 1), 1.0)
        patterns.append(
            EnhancedPatternEntry(
                **template,
                category=category,
                examples=[e.code for e in in_category[:PATTERN_EXAMPLE_LIMIT]],
                prevalence=prevalence,
            )
        )

    return patterns


class DatasetProcessor:
    """Builds an enhanced catalog artifact from a vulnerability dataset."""

    def __init__(
        self,
        dataset_path: str | Path,
        output_path: str | Path = "data",
        real_file_limit: int = REAL_FILE_LIMIT,
    ):
        """
        Initialize the processor.

        Args:
            dataset_path: Root of the dataset checkout. A missing directory
                is not an error; only synthetic examples are used then.
            output_path: Directory the artifact is written to.
            real_file_limit: Maximum number of real contracts per category.
        """
        self.dataset_path = Path(dataset_path)
        self.output_path = Path(output_path)
        self.real_file_limit = real_file_limit

    def collect_real_examples(self, category: PatternCategory) -> list[DatasetExample]:
        """Read excerpts of real vulnerable contracts for ``category``."""
        subdir = REAL_CONTRACT_DIRS.get(category)
        if subdir is None:
            return []

        contract_dir = self.dataset_path / subdir
        if not contract_dir.is_dir():
            logger.info(f"No real contracts for {category.value} at {contract_dir}")
            return []

        files = sorted(p for p in contract_dir.iterdir() if p.suffix == ".sol" and p.is_file())
        logger.info(f"Found {len(files)} {category.value} contract files")

        examples: list[DatasetExample] = []
        for index, path in enumerate(files[: self.real_file_limit]):
            try:
                code = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not process {path.name}: {e}")
                continue

            examples.append(
                DatasetExample(
                    id=f"{category.value}_real_{index}",
                    type=category.value,
                    severity=Severity.CRITICAL,
                    code=extract_relevant_code(code),
                    description=f"Real {category.value} vulnerability from {path.name}",
                    source=path.name,
                )
            )
        return examples

    @staticmethod
    def synthetic_examples(category: PatternCategory) -> list[DatasetExample]:
        prefix = _EXAMPLE_ID_PREFIXES.get(category, category.value)
        return [
            DatasetExample(
                id=f"{prefix}_{index}",
                type=category.value,
                severity=example.severity,
                code=example.code,
                description=example.description,
                source="synthetic",
            )
            for index, example in enumerate(SYNTHETIC_EXAMPLES.get(category, ()))
        ]

    def process(self, now: datetime | None = None) -> EnhancedCatalogArtifact:
        """Collect examples for every category and derive the enhanced patterns.

        Args:
            now: Processing timestamp recorded in the statistics.

        Returns:
            The artifact; nothing is written to disk.
        """
        logger.info(f"Processing dataset at {self.dataset_path}")

        examples: list[DatasetExample] = []
        distribution: dict[str, int] = {}

        for category in SYNTHETIC_EXAMPLES:
            collected = self.collect_real_examples(category) + self.synthetic_examples(category)
            examples.extend(collected)
            distribution[category.value] = distribution.get(category.value, 0) + len(collected)

        total_contracts = sum(distribution.values())
        patterns = build_enhanced_patterns(examples, total_contracts)

        logger.info(
            f"Processed {total_contracts} contracts, generated {len(patterns)} enhanced patterns"
        )

        return EnhancedCatalogArtifact(
            patterns=patterns,
            examples=examples,
            statistics=DatasetStatistics(
                total_contracts=total_contracts,
                vulnerability_distribution=distribution,
                processed_date=now or datetime.now(timezone.utc),
            ),
        )

    def save(self, artifact: EnhancedCatalogArtifact) -> Path:
        """Write ``artifact`` as JSON into the output directory.

        Returns:
            Path of the written file.
        """
        self.output_path.mkdir(parents=True, exist_ok=True)
        output_file = self.output_path / ENHANCED_CATALOG_FILENAME
        output_file.write_text(
            artifact.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
        logger.info(f"Knowledge base saved to {output_file}")
        return output_file

    def run(self) -> tuple[EnhancedCatalogArtifact, Path]:
        artifact = self.process()
        return artifact, self.save(artifact)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``contractrag-build-kb`` command."""
    parser = argparse.ArgumentParser(
        description="Build the enhanced vulnerability catalog from a smart contract dataset",
    )
    parser.add_argument(
        "dataset_path",
        nargs="?",
        default="./Smart-Contract-Dataset",
        help="Root of the dataset checkout (default: ./Smart-Contract-Dataset)",
    )
    parser.add_argument(
        "output_path",
        nargs="?",
        default="./data",
        help=f"Directory for {ENHANCED_CATALOG_FILENAME} (default: ./data)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=REAL_FILE_LIMIT,
        help=f"Real contracts read per category (default: {REAL_FILE_LIMIT})",
    )
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    processor = DatasetProcessor(args.dataset_path, args.output_path, real_file_limit=args.limit)
    try:
        artifact, output_file = processor.run()
    except OSError as e:
        print(f"Processing failed: {e}", file=sys.stderr)
        return 1

    print(f"Processed {artifact.statistics.total_contracts} contracts", file=sys.stderr)
    print(f"Generated {len(artifact.patterns)} enhanced patterns", file=sys.stderr)
    print(f"Knowledge base saved to {output_file}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
