"""
Structured error types for persistent enumerations.

Every failure raised while reconciling, caching or looking up an enumeration
is a ``PersistentEnumError``.  Errors carry a category, a structured context
naming the affected enumeration and table, and an optional chained cause, so
that the single place that may swallow one (the dummy fallback driver) can
log it with full metadata.

Manifesto:
    - **Typed hierarchy:** The fallback driver catches exactly one type
    - **Rich context:** Errors name the enumeration they concern
    - **Error chaining:** Driver errors are preserved as ``cause``

Architecture:
    ::

        PersistentEnumError  (category, context, cause)
        ├── ConfigurationError          (CONFIG)
        │   └── UnresolvableEnumerationError
        ├── IdentityMismatch            (CONFIG)
        ├── EnumTableInvalid            (DATABASE)  <- fallback may swallow
        ├── MissingEnumType             (DATABASE)  <- always downgraded
        ├── UnsafeInitialization        (INTERNAL)  <- never caught
        ├── NotInitializedError         (INTERNAL)
        ├── UnknownMemberError          (VALIDATION, LookupError)
        └── CaseInsensitiveLookupError  (VALIDATION)

Examples:
    >>> error = EnumTableInvalid("detected missing unique index on 'name'")
    >>> error.with_context(enum="app.models:Color", table="colors")
    EnumTableInvalid(...)
    >>> error.context.table
    'colors'

Tags:
    error-handling, exception-hierarchy, error-context, persistent-enum

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Ambiguous or missing declarations
    DATABASE = "DATABASE"         # Missing table, index, type
    VALIDATION = "VALIDATION"     # Bad lookups and assignments
    INTERNAL = "INTERNAL"         # Unsafe call sequences


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        enum: Identity of the enumeration (``module:qualname``)
        table: Backing table name
        name_attr: Name of the column holding member names
        metadata: Additional key-value pairs
    """

    enum: str | None = None
    table: str | None = None
    name_attr: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["enum", "table", "name_attr"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PersistentEnumError(Exception):
    """
    Base exception for all persistent enumeration errors.

    Subclasses set ``default_category``; the fallback driver and logging use
    ``to_dict()`` to report the error without losing its context.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PersistentEnumError:
        """
        Add context to this error (fluent API).

        Usage:
            raise EnumTableInvalid("missing table").with_context(table="colors")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigurationError(PersistentEnumError):
    """Ambiguous or missing enumeration declaration."""

    default_category = ErrorCategory.CONFIG


class UnresolvableEnumerationError(ConfigurationError):
    """A registered enumeration identity could not be re-resolved after a reload."""

    def __init__(self, identity: str, message: str | None = None):
        super().__init__(
            message or f"Could not resolve persistent enum '{identity}' after reload",
            context=ErrorContext(enum=identity),
        )
        self.identity = identity


class IdentityMismatch(PersistentEnumError):
    """A cached dummy store does not match the enumeration's current configuration."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# BACKING STORE
# =============================================================================


class EnumTableInvalid(PersistentEnumError):
    """The backing table is missing, unreachable, unindexed or under-declared.

    This is the only error the dummy fallback driver ever swallows, and only
    inside a maintenance context.
    """

    default_category = ErrorCategory.DATABASE


class MissingEnumType(PersistentEnumError):
    """The configured native enumerated type does not exist."""

    default_category = ErrorCategory.DATABASE


class UnsafeInitialization(PersistentEnumError):
    """Initialization was attempted inside an open transaction."""

    default_category = ErrorCategory.INTERNAL


class NotInitializedError(PersistentEnumError):
    """The enumeration has not been initialized yet."""

    default_category = ErrorCategory.INTERNAL


# =============================================================================
# LOOKUP
# =============================================================================


class UnknownMemberError(PersistentEnumError, LookupError):
    """Strict lookup of a member that does not exist."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, enum: str, member: Any):
        super().__init__(
            f"{enum}: Invalid member '{member}'",
            context=ErrorContext(enum=enum, metadata={"member": str(member)}),
        )
        self.member = member


class CaseInsensitiveLookupError(PersistentEnumError):
    """Case-insensitive lookup requested for case-dependent member names."""

    default_category = ErrorCategory.VALIDATION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PersistentEnumError",
    "ConfigurationError",
    "UnresolvableEnumerationError",
    "IdentityMismatch",
    "EnumTableInvalid",
    "MissingEnumType",
    "UnsafeInitialization",
    "NotInitializedError",
    "UnknownMemberError",
    "CaseInsensitiveLookupError",
]
