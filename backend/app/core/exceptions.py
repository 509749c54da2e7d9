"""
Error kinds raised by the messaging engine.

Every error carries a stable machine-readable ``error_code`` next to its
human-readable message so clients can branch without string matching.
Only ``StoreError`` is ever retried automatically.
"""

from typing import Any, Dict, Optional


class MessagingError(Exception):
    """Base exception for all messaging errors."""

    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the error body returned by the API."""
        return {
            "detail": self.message,
            "code": self.error_code,
            "context": self.context,
        }


class ValidationError(MessagingError):
    """Malformed input: the caller must send corrected data."""
    error_code = "VALIDATION_ERROR"
    status_code = 422


class ForbiddenError(MessagingError):
    """Role or ownership violation."""
    error_code = "FORBIDDEN"
    status_code = 403


class NotFoundError(MessagingError):
    """Conversation, message or participant absent (or no longer active)."""
    error_code = "NOT_FOUND"
    status_code = 404


class InvalidOperationError(MessagingError):
    """The action is not applicable to this target; choose another one."""
    error_code = "INVALID_OPERATION"
    status_code = 409


class ConflictError(InvalidOperationError):
    """The write collided with existing state."""
    error_code = "CONFLICT"


class StoreError(MessagingError):
    """Transient storage failure (lock timeout, aborted transaction)."""
    error_code = "STORE_ERROR"
    status_code = 503
    retryable = True
