"""ContractRAG: static vulnerability pre-analysis of smart contracts for LLM audits."""

__version__ = "0.1.0"
