"""
Custom exception hierarchy for the asset cache.

All exceptions inherit from CacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all asset cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when configuration is invalid.

    Examples:
        - Non-positive BoundedCache capacity
        - Non-positive page or chunk size
    """

    pass


class StoreUnavailable(CacheError):
    """Raised when the storage engine cannot be opened or upgraded.

    Context should include:
        - path: The database path
        - reason: Short description (io_error, version_conflict, upgrade_failed)
    """

    pass


class NamespaceNotFound(CacheError):
    """Raised when an operation references a namespace never declared via init().

    Context should include:
        - namespace: The namespace that was requested
        - declared: The namespaces currently declared
    """

    pass


class StoreNotReady(NamespaceNotFound):
    """Raised when the store is used before init() completes or after close().

    No namespace is declared outside the READY state, so this is a
    NamespaceNotFound as far as callers are concerned.

    Context should include:
        - state: The current store state
    """

    pass


class TransactionFailure(CacheError):
    """Raised when a read or write fails at the storage-engine level.

    Context should include:
        - operation: The store operation (get, bulk_set, ...)
        - namespace: The namespace involved
    """

    pass


class InvalidRecord(CacheError, ValueError):
    """Raised when a record cannot be stored.

    Context should include:
        - key_field: The field expected to carry the record id
        - reason: Why the record was rejected
    """

    pass
