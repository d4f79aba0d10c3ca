"""
Sahayak exceptions.

Cache errors are absorbed at the cache boundary; everything else here is
meant to reach the caller.
"""


class SahayakError(Exception):
    """Base exception for all Sahayak errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SahayakError):
    """Raised when the runtime is wired with invalid settings."""


class CacheIOError(SahayakError):
    """Raised by persistent cache tiers when a read, write or delete fails."""

    def __init__(self, message: str, key: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.key = key


class DuplicateOperationError(SahayakError):
    """Raised when an operation key is issued while the same key is in flight."""

    def __init__(self, operation_key: str, details: dict | None = None):
        super().__init__(f"Operation already in progress: {operation_key}", details)
        self.operation_key = operation_key


class OperationFailure(SahayakError):
    """Domain failure of a wrapped remote operation."""

    def __init__(
        self,
        message: str,
        operation_key: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.operation_key = operation_key


class TierOrchestrationError(SahayakError):
    """Raised when progressive loading cannot partition or dispatch its tiers."""

    def __init__(self, message: str, tier: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.tier = tier
