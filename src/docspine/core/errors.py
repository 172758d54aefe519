"""
Structured error types for docspine.

Provides a small hierarchy of typed errors with metadata for error
categorization, logging, and caller-directed retry decisions.

Manifesto:
    - **Typed Error Hierarchy:** Configuration, query, write and data-shape
      failures are different things and are raised as different types
    - **Explicit Retry Semantics:** Each error knows if it's retryable, but
      nothing inside docspine ever retries; that is the caller's decision
    - **Rich Context:** Errors carry the collection, stage and run they
      happened in
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       DocSpineError                          │
        │  (category, retryable, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigError        DatabaseError       DataShapeError       │
        │  (CONFIG)           (DATABASE)          (VALIDATION)         │
        │       │                  │                                   │
        │  MissingConfig      QueryError          TransientError       │
        │  InvalidConfig      WriteError          (retryable)          │
        │                                              │               │
        │                                   DatabaseConnectionError    │
        └─────────────────────────────────────────────────────────────┘

Propagation:
    ConfigError fails fast before any I/O. QueryError fails the current
    chain run. WriteError fails the triggering buffer call and leaves the
    buffered operations in place so the caller may flush again.
    DataShapeError fails the operation on the offending document.

Examples:
    >>> error = QueryError("find failed").with_context(collection="orders")
    >>> error.context.collection
    'orders'
    >>> error.to_dict()["category"]
    'DATABASE'

Tags:
    error-handling, exception-hierarchy, error-context, docspine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        NETWORK: Connection, timeout, DNS errors
        DATABASE: Query and write failures reported by the store
        VALIDATION: Documents that lack required fields
        CONFIG: Missing or malformed chain / store configuration
        PIPELINE: Chain execution failures
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    PIPELINE = "PIPELINE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what the pipeline knows about where an error
    happened; anything else goes into ``metadata``.

    Attributes:
        collection: Collection being read or written
        stage: Chain stage label (``in``, a collection name, ``out``)
        run_id: Chain run identifier
        operation: Store operation (``find``, ``bulk_write``, ...)
        metadata: Additional key-value pairs
    """

    collection: str | None = None
    stage: str | None = None
    run_id: str | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["collection", "stage", "run_id", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocSpineError(Exception):
    """
    Base exception for all docspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = DocSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("find failed").with_context(
                collection="orders",
                operation="find",
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS
# =============================================================================


class TransientError(DocSpineError):
    """Temporary error that may succeed if the caller tries again."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """Could not reach the document store."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(DocSpineError):
    """
    Configuration error.

    Raised while building chain specs or store handles, before any I/O.
    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Missing required configuration: {key}", **kwargs)
        self.key = key


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Invalid value for {key}: {value!r}", **kwargs)
        self.key = key
        self.value = value


# =============================================================================
# STORE ERRORS
# =============================================================================


class DatabaseError(DocSpineError):
    """Error reported by the document store."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class QueryError(DatabaseError):
    """Malformed filter/projection or transport failure while reading."""

    pass


class WriteError(DatabaseError):
    """
    Batched write or delete failure.

    The buffer that issued the write keeps its operations, so flushing
    again re-sends the same batch.
    """

    def __init__(self, message: str, *, pending: int = 0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.pending = pending

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.pending:
            result["pending"] = self.pending
        return result


# =============================================================================
# DATA SHAPE ERRORS
# =============================================================================


class DataShapeError(DocSpineError):
    """A document lacks a field the operation requires (usually ``_id``)."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Works with both DocSpineError and standard exceptions.
    """
    if isinstance(error, DocSpineError):
        return error.retryable

    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )
    return isinstance(error, retryable_types)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, DocSpineError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DocSpineError",
    "TransientError",
    "DatabaseConnectionError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "DatabaseError",
    "QueryError",
    "WriteError",
    "DataShapeError",
    "is_retryable",
    "categorize_error",
]
