"""Exception types and error classification utilities."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ValidationError


class HabitmateError(Exception):
    """Base class for errors raised by habitmate."""


class DateParseError(HabitmateError, ValueError):
    """A value could not be interpreted as a calendar date."""


class NotAuthenticatedError(HabitmateError):
    """A mutation was attempted without a signed-in user."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class InputValidationError(HabitmateError, ValueError):
    """Caller input was rejected before any remote call was made."""


class InvalidStateTransitionError(HabitmateError, ValueError):
    """A partner task or friendship was asked to move to a state it cannot reach."""


class DatabaseError(HabitmateError):
    """A store operation failed."""


class RecordNotFoundError(DatabaseError, KeyError):
    """The requested record does not exist."""

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return str(self.args[0]) if self.args else ""


class UniqueConstraintError(DatabaseError):
    """An insert or update collided with a unique index."""


class StorageError(HabitmateError):
    """A photo storage operation failed."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Auth errors
    ERR_NOT_AUTHENTICATED = "ERR_NOT_AUTHENTICATED"

    # Service errors
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_STORAGE_FAILED = "ERR_STORAGE_FAILED"

    # Uniqueness errors
    ERR_USERNAME_TAKEN = "ERR_USERNAME_TAKEN"
    ERR_EMAIL_IN_USE = "ERR_EMAIL_IN_USE"
    ERR_ALREADY_COMPLETED = "ERR_ALREADY_COMPLETED"
    ERR_FRIENDSHIP_EXISTS = "ERR_FRIENDSHIP_EXISTS"
    ERR_DUPLICATE_RECORD = "ERR_DUPLICATE_RECORD"

    # Lookup and permission errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Input errors
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_ERROR_PATTERNS: dict[
    Literal["auth", "network"],
    dict[str, list[str] | set[str]],
] = {
    "auth": {
        "phrases": [
            "not authenticated",
            "invalid token",
            "session expired",
            "unauthorized",
        ],
        "exception_types": {"NotAuthenticatedError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "network",
            "unreachable",
            "database is locked",
        ],
        "exception_types": {"ConnectionError", "TimeoutError"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["auth", "network"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def _classify_unique_violation(error_str: str) -> ErrorResponse:
    """Map a unique index collision to the message the user should see."""
    if "profiles.username" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_USERNAME_TAKEN,
            message="Username already taken",
            suggestion="Pick a different username.",
            severity=ErrorSeverity.LOW,
        )

    if "profiles.email" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_EMAIL_IN_USE,
            message="Email already in use",
            suggestion="Sign in with the account that owns this email.",
            severity=ErrorSeverity.LOW,
        )

    if "task_completions." in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_ALREADY_COMPLETED,
            message="Task already completed today",
            suggestion="Uncomplete today's entry first if you want to replace the photo.",
            severity=ErrorSeverity.LOW,
        )

    if "friendships." in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_FRIENDSHIP_EXISTS,
            message="Friendship already exists",
            suggestion="Check your incoming and outgoing requests.",
            severity=ErrorSeverity.LOW,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_DUPLICATE_RECORD,
        message="This record already exists.",
        suggestion="Refresh and try again.",
        severity=ErrorSeverity.LOW,
    )


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during a service call

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, UniqueConstraintError) or "unique constraint failed" in error_str:
        return _classify_unique_violation(error_str)

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_AUTHENTICATED,
            message="Not authenticated",
            suggestion="Sign in again and retry.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, InvalidStateTransitionError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message=str(exception),
            suggestion="Refresh to see the current state and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InputValidationError | DateParseError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_INPUT,
            message=str(exception),
            suggestion="Check the values you entered and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RecordNotFoundError) or "not found" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=str(exception) or "Record not found.",
            suggestion="It may have been deleted. Refresh and try again.",
            severity=ErrorSeverity.LOW,
        )

    if exception_type == "PermissionError" or "permission" in error_str or "does not belong to" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message=str(exception) or "You don't have permission for this action.",
            suggestion="Only the owner or a participant can change this.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, StorageError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORAGE_FAILED,
            message="Failed to upload photo",
            suggestion="Try a smaller photo or retry in a moment.",
            severity=ErrorSeverity.MEDIUM,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message=str(exception) or "An unexpected error occurred.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.MEDIUM,
    )


def input_error_from_validation(error: ValidationError) -> InputValidationError:
    """Turn a pydantic ValidationError into an InputValidationError carrying the first message."""
    details = error.errors()
    if not details:
        return InputValidationError(str(error))
    first = details[0]
    original = first.get("ctx", {}).get("error")
    return InputValidationError(str(original) if original else first["msg"])
