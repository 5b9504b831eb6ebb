"""Custom exceptions for the WingMatch engine."""

from typing import Any, Dict, Optional


class WingMatchError(Exception):
    """Base exception for all WingMatch errors."""

    retryable: bool = False

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the error with a message and optional details.

        Args:
            message (str): Error message describing what went wrong.
            status_code (int): HTTP status code associated with the error (default 500).
            details (Optional[Dict[str, Any]]): Additional context or debug information.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(WingMatchError):
    """Raised when there's an issue with the application configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class DatabaseError(WingMatchError):
    """Raised when a storage operation fails for a non-transient reason."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class ValidationError(WingMatchError):
    """Raised when input is malformed. Always raised before any write."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 400, details)


class ForbiddenError(WingMatchError):
    """Raised when the caller lacks the relationship or ownership a mutation requires."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 403, details)


class NotFoundError(WingMatchError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 404, details)


class ConflictError(WingMatchError):
    """
    Raised when a write collides with existing state.

    Covers duplicate decisions for a pair that already has a governing row and
    resolution of a pending suggestion that is no longer pending.
    """

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 409, details)


class TransientError(WingMatchError):
    """Raised on network or storage failures with no semantic meaning. Safe to retry."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 503, details)
