"""
Exception Hierarchy & Error Handling Framework
===============================================
Type-safe exception taxonomy with structured context propagation,
retry metadata, and logging integration.

Collaborator failures are converted into degraded or failed outcomes at
the call site (see core.outcome); these exceptions carry the reason.

Architecture: Railway-Oriented Programming + Error Algebra
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from core.enums import ErrorSeverity

# =============================================================================
# BASE EXCEPTION CLASSES
# =============================================================================


class KeywordIntelligenceException(Exception):
    """
    Root exception for all engine errors.

    Implements structured error context with:
    - Unique error ID for log correlation
    - Severity classification
    - Structured context dictionary
    - Retry metadata
    - Timestamp for temporal analysis
    """

    def __init__(
        self,
        message: str,
        *,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[dict[str, Any]] = None,
        error_code: Optional[str] = None,
        retryable: bool = False,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.error_id: UUID = uuid4()
        self.message: str = message
        self.severity: ErrorSeverity = severity
        self.context: dict[str, Any] = context or {}
        self.error_code: Optional[str] = error_code
        self.retryable: bool = retryable
        self.timestamp: datetime = datetime.now(timezone.utc)

        if cause:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "error_id": str(self.error_id),
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.name,
            "error_code": self.error_code,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.__cause__) if self.__cause__ else None,
        }

    def __str__(self) -> str:
        """Human-readable error representation."""
        parts = [f"[{self.severity.name}] {self.message}"]
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        if self.context:
            parts.append(f"Context: {self.context}")
        return " | ".join(parts)


# =============================================================================
# LLM EXCEPTIONS
# =============================================================================


class LLMException(KeywordIntelligenceException):
    """Base exception for text-completion collaborator errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.ERROR)
        super().__init__(message, **kwargs)


class LLMRateLimitError(LLMException):
    """API rate limit exceeded."""

    def __init__(
        self,
        message: str = "LLM API rate limit exceeded",
        *,
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            retryable=True,
            context={"retry_after_seconds": retry_after},
            error_code="LLM_RATE_LIMIT",
            **kwargs,
        )
        self.retry_after = retry_after


class LLMTimeoutError(LLMException):
    """API request timed out."""

    def __init__(
        self,
        message: str = "LLM API request timed out",
        *,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            retryable=True,
            context={"timeout_seconds": timeout_seconds},
            error_code="LLM_TIMEOUT",
            **kwargs,
        )


class LLMInvalidResponseError(LLMException):
    """LLM returned malformed or empty response."""

    def __init__(
        self,
        message: str = "LLM returned invalid response",
        *,
        response_text: Optional[str] = None,
        expected_format: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            retryable=False,
            context={
                "response_preview": response_text[:500] if response_text else None,
                "expected_format": expected_format,
            },
            error_code="LLM_INVALID_RESPONSE",
            **kwargs,
        )


class LLMProviderError(LLMException):
    """Provider rejected the request (authentication, bad request, outage)."""

    def __init__(
        self,
        message: str = "LLM provider error",
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            retryable=False,
            context={"provider": provider, "status_code": status_code},
            error_code="LLM_PROVIDER_ERROR",
            **kwargs,
        )


# =============================================================================
# EMBEDDING EXCEPTIONS
# =============================================================================


class EmbeddingGenerationError(KeywordIntelligenceException):
    """Failed to generate text embeddings."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        *,
        text_preview: Optional[str] = None,
        model_name: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            retryable=True,
            context={
                "text_preview": text_preview[:100] if text_preview else None,
                "model_name": model_name,
            },
            error_code="EMBEDDING_GENERATION_FAILED",
            **kwargs,
        )


# =============================================================================
# KEYWORD RESEARCH EXCEPTIONS
# =============================================================================


class KeywordResearchException(KeywordIntelligenceException):
    """Base exception for keyword research errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.ERROR)
        super().__init__(message, **kwargs)


class NoKeywordsFoundError(KeywordResearchException):
    """Keyword research yielded no candidates to score."""

    def __init__(
        self, message: str = "No keywords found for topic", *, topic: Optional[str] = None, **kwargs
    ):
        super().__init__(
            message,
            retryable=False,
            context={"topic": topic},
            error_code="NO_KEYWORDS_FOUND",
            **kwargs,
        )


class KeywordAPIError(KeywordResearchException):
    """Keyword suggestion provider request failed."""

    def __init__(
        self,
        message: str = "Keyword suggestion API error",
        *,
        api_name: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            retryable=True,
            context={"api_name": api_name, "status_code": status_code},
            error_code="KEYWORD_API_ERROR",
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================


class StorageException(KeywordIntelligenceException):
    """Base exception for persisted-state errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.ERROR)
        super().__init__(message, **kwargs)


class InstanceLockedError(StorageException):
    """Another engine instance already holds the single-writer lock."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        lock_path: Optional[str] = None,
        holder_pid: Optional[int] = None,
        **kwargs,
    ):
        message = message or f"Engine lock {lock_path} is held by process {holder_pid}"
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            retryable=False,
            context={"lock_path": lock_path, "holder_pid": holder_pid},
            error_code="INSTANCE_LOCKED",
            **kwargs,
        )


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================


class ValidationException(KeywordIntelligenceException):
    """Base exception for validation errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.WARNING)
        super().__init__(message, **kwargs)


# Alias for backward compatibility
ValidationError = ValidationException


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================


class ConfigurationException(KeywordIntelligenceException):
    """Base exception for configuration errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.CRITICAL)
        super().__init__(message, **kwargs)


class MissingConfigurationError(ConfigurationException):
    """Required configuration parameter missing."""

    def __init__(self, parameter_name: str, message: Optional[str] = None, **kwargs):
        message = message or f"Required configuration parameter missing: {parameter_name}"
        super().__init__(
            message,
            retryable=False,
            context={"parameter_name": parameter_name},
            error_code="MISSING_CONFIGURATION",
            **kwargs,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(exc: Exception) -> bool:
    """
    Determine if an exception is retryable.

    Args:
        exc: Exception to check

    Returns:
        True if operation should be retried, False otherwise
    """
    if isinstance(exc, KeywordIntelligenceException):
        return exc.retryable

    # Heuristic for non-application exceptions
    retryable_types = (
        TimeoutError,
        ConnectionError,
    )
    return isinstance(exc, retryable_types)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Base
    "KeywordIntelligenceException",
    # LLM
    "LLMException",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMInvalidResponseError",
    "LLMProviderError",
    # Embeddings
    "EmbeddingGenerationError",
    # Keywords
    "KeywordResearchException",
    "NoKeywordsFoundError",
    "KeywordAPIError",
    # Storage
    "StorageException",
    "InstanceLockedError",
    # Validation
    "ValidationException",
    "ValidationError",
    # Configuration
    "ConfigurationException",
    "MissingConfigurationError",
    # Utilities
    "is_retryable",
]
