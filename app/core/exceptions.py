"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Referenced user or message does not exist
    ├── PermissionDeniedError - Caller does not own the resource
    └── PersistenceError - The store failed to read or write

Each class carries a default machine-readable ``error_code``. Services raise
these internally and convert them to ``ServiceResult.failure`` at their
boundary, so views only ever see result objects:

    try:
        message = self.messages.get(message_id)
    except PersistenceError as e:
        return ServiceResult.from_exception(e)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Message not found",
                "error_code": "NOT_FOUND",
                "details": {"message_id": 123}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Example:
        raise ValidationError(
            "Message must have content or a GIF, not both",
            details={"content": content, "gif_url": gif_url},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a referenced user or message does not exist."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a user acts on a resource they do not own.

    For authentication failures (missing/invalid token), DRF's
    AuthenticationFailed applies instead. This is for authorization, e.g.
    editing someone else's message.
    """

    default_error_code: str = "FORBIDDEN"


class PersistenceError(BaseApplicationError):
    """
    Raised when the underlying store fails.

    Wraps ``django.db.DatabaseError`` and lock acquisition timeouts. Callers
    do not retry; the failure is reported once and earlier side effects of
    the same operation stay in place.

    Example:
        try:
            return Message.objects.create(**fields)
        except DatabaseError as e:
            raise PersistenceError(
                "Failed to store message",
                details={"original_error": str(e)},
            ) from e
    """

    default_error_code: str = "PERSISTENCE_ERROR"
