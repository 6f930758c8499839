"""
Structured error types for db-spine.

Every failure the traversal engine can surface is a typed ``SpineError``
carrying a category, a retry flag, and an ``ErrorContext`` with enough
cursor and row information to log and alert on.

Manifesto:
    - **Typed hierarchy:** Source, identity, checksum and persistence
      failures are distinct types so callers can branch on them
    - **No internal retries:** ``retryable`` is advice for the caller's
      backoff policy, the engine never retries by itself
    - **Rich context:** Errors carry cursor, limit, db name and key names
    - **Error chaining:** Driver and OS errors are preserved as ``cause``

Architecture:
    ::

        SpineError (category, retryable, context, cause)
        ├── SourceError ─────────── SourceQueryError
        ├── ValidationError ─────── IdentityGenerationError
        ├── ConfigError ─────────── InvalidConfigError
        │                           ChecksumUnavailableError
        └── StorageError ────────── StatePersistenceError

Examples:
    >>> err = SourceQueryError("query failed").with_context(cursor=300, limit=300)
    >>> err.context.metadata["cursor"]
    300
    >>> err.to_dict()["category"]
    'SOURCE'

Tags:
    error-handling, exception-hierarchy, error-context, db-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors
    DATABASE = "DATABASE"         # Connection, query failures
    STORAGE = "STORAGE"           # State file, disk

    # Source/data errors
    SOURCE = "SOURCE"             # Source query primitive failed
    VALIDATION = "VALIDATION"     # Row does not satisfy key constraints

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"             # Missing config, invalid settings, runtime

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what every traversal error knows about (which
    database, which source, which phase); anything else goes into
    ``metadata``.

    Attributes:
        db_name: Logical database name being traversed
        source_name: Name of the row source (table or query label)
        phase: Traversal phase the error occurred in
        metadata: Additional key-value pairs (cursor, limit, key names...)
    """

    db_name: str | None = None
    source_name: str | None = None
    phase: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["db_name", "source_name", "phase"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SpineError(Exception):
    """
    Base exception for all db-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    their domain sensible defaults.

    Examples:
        >>> error = SpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        Chaining errors:

        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     error = SpineError("Could not save", cause=e)
        >>> error.cause
        OSError('disk full')
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

    def with_context(self, **kwargs: Any) -> SpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SourceQueryError("Failed", cause=exc).with_context(
                db_name="inventory",
                cursor=300,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
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
# SOURCE ERRORS
# =============================================================================


class SourceError(SpineError):
    """Error from a data source."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceQueryError(SourceError):
    """
    The partial-query primitive failed.

    Fatal for the current call. The traversal state is left exactly as it
    was before the fetch, so the caller may simply call again after its
    own backoff.
    """

    default_retryable = True


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(SpineError):
    """
    Data validation error.

    Never retryable - data or configuration must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class IdentityGenerationError(ValidationError):
    """
    A document id could not be derived from a row.

    Raised when the row is missing, the primary key list is empty, or a
    declared primary key has no case-insensitive match among the row's
    columns. ``field`` names the unmatched key in the last case.
    """


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class ChecksumUnavailableError(ConfigError):
    """The runtime cannot provide the SHA-1 digest. Not recoverable."""


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(SpineError):
    """Storage-related error (disk, state files)."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class StatePersistenceError(StorageError):
    """Loading, saving or clearing the persisted traversal state failed."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SpineError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SpineError",
    "SourceError",
    "SourceQueryError",
    "ValidationError",
    "IdentityGenerationError",
    "ConfigError",
    "InvalidConfigError",
    "ChecksumUnavailableError",
    "StorageError",
    "StatePersistenceError",
    "is_retryable",
]
