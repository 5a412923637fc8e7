"""Core utilities: exception hierarchy and rate limiting."""

from .exceptions import (
    AnalysisError,
    APIError,
    AuthenticationError,
    CatalogLoadError,
    CatalogSourceNotFoundError,
    ClientError,
    ConfigurationError,
    ContractRAGError,
    InputTooLargeError,
    InvalidInputError,
    InvalidPatternError,
    KnowledgeBaseError,
    LLMResponseError,
    MalformedCatalogError,
    MissingConfigError,
    NetworkError,
    NotSolidityCodeError,
    RateLimitError,
    ReloadInProgressError,
    ValidationError,
)
from .rate_limiter import RateLimiter, create_audit_limiter

__all__ = [
    # Rate limiting
    "RateLimiter",
    "create_audit_limiter",
    # Exceptions
    "ContractRAGError",
    "AnalysisError",
    "InputTooLargeError",
    "KnowledgeBaseError",
    "CatalogLoadError",
    "CatalogSourceNotFoundError",
    "MalformedCatalogError",
    "InvalidPatternError",
    "ReloadInProgressError",
    "ClientError",
    "NetworkError",
    "APIError",
    "RateLimitError",
    "AuthenticationError",
    "LLMResponseError",
    "ValidationError",
    "InvalidInputError",
    "NotSolidityCodeError",
    "ConfigurationError",
    "MissingConfigError",
]
