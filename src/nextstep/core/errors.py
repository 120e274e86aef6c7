"""Error taxonomy shared by the engine, the adapters and the HTTP layer."""

from __future__ import annotations


class NextStepError(Exception):
    """Base exception for recommendation engine errors."""

    retryable: bool = False


class ValidationError(NextStepError):
    """Raised when an input field is invalid. Never retried."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(NextStepError):
    """Raised when a context or recommendation does not exist."""

    def __init__(self, resource: str, message: str) -> None:
        super().__init__(message)
        self.resource = resource


class OracleUnavailableError(NextStepError):
    """Raised when an oracle call fails or exceeds its time bound."""

    retryable = True

    def __init__(self, message: str, oracle: str | None = None) -> None:
        super().__init__(message)
        self.oracle = oracle


class StorageFailureError(NextStepError):
    """Raised when a repository operation fails after its retries."""

    retryable = True

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


__all__ = [
    "NextStepError",
    "NotFoundError",
    "OracleUnavailableError",
    "StorageFailureError",
    "ValidationError",
]
