"""Custom exception hierarchy for ContractRAG.

This module provides a structured exception hierarchy so callers can
distinguish rejected input, knowledge base problems and upstream API
failures without catching broad exceptions.
"""


class ContractRAGError(Exception):
    """Base exception for all ContractRAG errors.

    All custom exceptions should inherit from this class to allow
    callers to catch all ContractRAG-specific errors with a single
    except clause when appropriate.
    """
    pass


# =============================================================================
# Analysis Errors
# =============================================================================

class AnalysisError(ContractRAGError):
    """Base exception for analysis-related errors."""
    pass


class InputTooLargeError(AnalysisError):
    """Source text exceeds the maximum size accepted for analysis."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Input too large: {size} bytes (limit {limit} bytes)")
        self.size = size
        self.limit = limit


# =============================================================================
# Knowledge Base Errors
# =============================================================================

class KnowledgeBaseError(ContractRAGError):
    """Base exception for knowledge base errors."""
    pass


class CatalogLoadError(KnowledgeBaseError):
    """The enhanced catalog could not be loaded."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Could not load enhanced catalog from {source}: {reason}")
        self.source = source
        self.reason = reason


class CatalogSourceNotFoundError(CatalogLoadError):
    """The enhanced catalog artifact does not exist."""
    pass


class MalformedCatalogError(CatalogLoadError):
    """The enhanced catalog artifact is not valid JSON or has the wrong shape."""
    pass


class InvalidPatternError(KnowledgeBaseError):
    """A pattern expression does not compile or matches the empty string."""

    def __init__(self, pattern_id: str, reason: str):
        super().__init__(f"Invalid pattern '{pattern_id}': {reason}")
        self.pattern_id = pattern_id
        self.reason = reason


class ReloadInProgressError(KnowledgeBaseError):
    """Another reload of the enhanced catalog is already running."""
    pass


# =============================================================================
# Client Errors (API/Network)
# =============================================================================

class ClientError(ContractRAGError):
    """Base exception for API client errors."""
    pass


class NetworkError(ClientError):
    """Network connectivity or request error."""
    pass


class APIError(ClientError):
    """Error returned by an external API."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(ClientError):
    """Audit cooldown or API rate limit exceeded."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(ClientError):
    """API authentication failed (invalid/missing credentials)."""
    pass


class LLMResponseError(ClientError):
    """The LLM answered with something that is not a valid audit report."""
    pass


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(ContractRAGError):
    """Base exception for input validation errors."""
    pass


class InvalidInputError(ValidationError):
    """Invalid input provided to a function or tool."""
    pass


class NotSolidityCodeError(InvalidInputError):
    """Input does not look like a Solidity smart contract."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ContractRAGError):
    """Base exception for configuration errors."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""
    pass
