"""Error classification utilities for record store failures."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class StoreErrorKind(Enum):
    """Categories of errors that can occur while talking to the record store."""

    VALIDATION = "validation"
    UNIQUENESS_CONFLICT = "uniqueness_conflict"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    TRANSPORT = "transport"
    STALE_WRITE = "stale_write"
    UNCLASSIFIED = "unclassified"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_UNIQUENESS_CONFLICT = "ERR_UNIQUENESS_CONFLICT"
    ERR_REFERENTIAL_INTEGRITY = "ERR_REFERENTIAL_INTEGRITY"
    ERR_TRANSPORT = "ERR_TRANSPORT"
    ERR_STALE_WRITE = "ERR_STALE_WRITE"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class StoreOperationError(Exception):
    """A record store call failed; carries its classification for the caller."""

    def __init__(self, message: str, *, kind: StoreErrorKind, operation: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.operation = operation


PatternType = Literal["uniqueness", "referential", "transport", "stale"]

_ERROR_PATTERNS: dict[PatternType, dict[str, list[str] | set[str]]] = {
    "uniqueness": {
        "phrases": [
            "unique constraint failed",
            "duplicate key",
            "already exists",
        ],
        "exception_types": set(),
    },
    "referential": {
        "phrases": [
            "foreign key constraint failed",
            "foreign key",
            "violates foreign key",
        ],
        "exception_types": set(),
    },
    "transport": {
        "phrases": [
            "connection",
            "timeout",
            "timed out",
            "network",
            "unable to open database",
            "database is locked",
            "disk i/o error",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "BrokenPipeError"},
    },
    "stale": {
        "phrases": ["stale write", "version mismatch"],
        "exception_types": {"StaleRecordError"},
    },
}

_KIND_MESSAGES: dict[StoreErrorKind, str] = {
    StoreErrorKind.UNIQUENESS_CONFLICT: "A record for this date already exists.",
    StoreErrorKind.REFERENTIAL_INTEGRITY: "Invalid user or work log reference. Please refresh and try again.",
    StoreErrorKind.TRANSPORT: "Network error. Check your connection.",
    StoreErrorKind.STALE_WRITE: "This day was changed elsewhere. Reload it and save again.",
}


def _iter_error_chain(exception: BaseException) -> list[BaseException]:
    """Return the exception followed by its causes, outermost first."""
    chain: list[BaseException] = []
    current: BaseException | None = exception
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _match_error_pattern(*, error_str: str, exception_types: set[str], pattern_type: PatternType) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or bool(
        exception_types & set(patterns["exception_types"])
    )


def classify_store_error(exception: BaseException) -> tuple[StoreErrorKind, str]:
    """Classify a record store failure and return a user-friendly message.

    Inspects the exception, its chained causes, their type names and messages.
    An already classified StoreOperationError keeps its kind and its message.

    Args:
        exception: The exception raised by the store call

    Returns:
        Tuple of (StoreErrorKind, user_friendly_message)
    """
    if isinstance(exception, StoreOperationError):
        return exception.kind, exception.message

    chain = _iter_error_chain(exception)
    error_str = " | ".join(str(e) for e in chain).lower()
    exception_types = {type(e).__name__ for e in chain}

    # Order matters: the first matching pattern wins
    if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="stale"):
        kind = StoreErrorKind.STALE_WRITE
    elif _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="uniqueness"):
        kind = StoreErrorKind.UNIQUENESS_CONFLICT
    elif _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="referential"):
        kind = StoreErrorKind.REFERENTIAL_INTEGRITY
    elif _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="transport"):
        kind = StoreErrorKind.TRANSPORT
    else:
        return StoreErrorKind.UNCLASSIFIED, f"Save failed: {exception}"

    return kind, _KIND_MESSAGES[kind]


def to_store_error(exception: BaseException, *, operation: str) -> StoreOperationError:
    """Wrap an arbitrary store failure into a classified StoreOperationError."""
    if isinstance(exception, StoreOperationError):
        return exception
    kind, message = classify_store_error(exception)
    return StoreOperationError(message, kind=kind, operation=operation)


def error_response_for(exception: BaseException) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during a service call

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, KeyError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="The requested record was not found.",
            suggestion="Refresh the page and select an existing user or day.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, ValueError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Check the submitted values and try again.",
            severity=ErrorSeverity.LOW,
        )

    kind, message = classify_store_error(exception)

    if kind == StoreErrorKind.VALIDATION:
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=message,
            suggestion="Reload the day and check the tasks you are saving.",
            severity=ErrorSeverity.LOW,
        )

    if kind == StoreErrorKind.UNIQUENESS_CONFLICT:
        return ErrorResponse(
            code=ErrorCode.ERR_UNIQUENESS_CONFLICT,
            message=message,
            suggestion="Reload the day to edit the existing record.",
            severity=ErrorSeverity.LOW,
        )

    if kind == StoreErrorKind.STALE_WRITE:
        return ErrorResponse(
            code=ErrorCode.ERR_STALE_WRITE,
            message=message,
            suggestion="Reload the day and re-apply your changes.",
            severity=ErrorSeverity.LOW,
        )

    if kind == StoreErrorKind.REFERENTIAL_INTEGRITY:
        return ErrorResponse(
            code=ErrorCode.ERR_REFERENTIAL_INTEGRITY,
            message=message,
            suggestion="Refresh the page and select the user again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if kind == StoreErrorKind.TRANSPORT:
        return ErrorResponse(
            code=ErrorCode.ERR_TRANSPORT,
            message=message,
            suggestion="Please check your connection and save again.",
            severity=ErrorSeverity.HIGH,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message=message,
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
