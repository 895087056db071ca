"""Error codes and exceptions for Bank Grade Security."""

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class ErrorCategory(Enum):
    """Error categories for classification."""
    REGISTRY = "REG"
    TAXONOMY = "METRIC"
    SCAN = "SCAN"
    NETWORK = "NET"
    PERSISTENCE = "IO"


@dataclass
class ErrorResponse:
    """Structured error response."""
    code: str
    message: str
    category: ErrorCategory
    details: Optional[str] = None

    def __str__(self) -> str:
        return format_error(self)


class ErrorCodes:
    """Centralized error codes for the application."""

    # Registry Errors (REG-001 to REG-099)
    REG_INVALID_FORMAT = ErrorResponse(
        code="REG-001",
        message="Registry file has incorrect format",
        category=ErrorCategory.REGISTRY
    )
    REG_FILENAME_MISMATCH = ErrorResponse(
        code="REG-002",
        message="Filename does not match contents",
        category=ErrorCategory.REGISTRY
    )
    REG_INVALID_TARGET = ErrorResponse(
        code="REG-003",
        message="Target has incorrect format",
        category=ErrorCategory.REGISTRY
    )
    REG_INVALID_DOMAIN = ErrorResponse(
        code="REG-004",
        message="Invalid domain format",
        category=ErrorCategory.REGISTRY
    )
    REG_DUPLICATE_TARGET = ErrorResponse(
        code="REG-005",
        message="Target duplicated",
        category=ErrorCategory.REGISTRY
    )
    REG_NOT_FOUND = ErrorResponse(
        code="REG-006",
        message="Registry directory not found",
        category=ErrorCategory.REGISTRY
    )

    # Taxonomy Errors (METRIC-001 to METRIC-099)
    METRIC_UNKNOWN = ErrorResponse(
        code="METRIC-001",
        message="Unknown metric",
        category=ErrorCategory.TAXONOMY
    )

    # Scan Errors (SCAN-001 to SCAN-099)
    SCAN_TOO_MANY_REDIRECTS = ErrorResponse(
        code="SCAN-001",
        message="Too many redirects",
        category=ErrorCategory.SCAN
    )
    SCAN_INVALID_STATUS = ErrorResponse(
        code="SCAN-002",
        message="Invalid response status",
        category=ErrorCategory.SCAN
    )
    SCAN_FAILED = ErrorResponse(
        code="SCAN-003",
        message="Scan failed to complete",
        category=ErrorCategory.SCAN
    )

    # Network Errors (NET-001 to NET-099)
    NET_UNREACHABLE = ErrorResponse(
        code="NET-001",
        message="Target unreachable over HTTP and HTTPS",
        category=ErrorCategory.NETWORK
    )

    # Persistence Errors (IO-001 to IO-099)
    IO_LIVE_WRITE_FAILED = ErrorResponse(
        code="IO-001",
        message="Failed to write live report",
        category=ErrorCategory.PERSISTENCE
    )
    IO_HISTORY_WRITE_FAILED = ErrorResponse(
        code="IO-002",
        message="Failed to write history snapshot",
        category=ErrorCategory.PERSISTENCE
    )

    @classmethod
    def with_details(cls, error: ErrorResponse, details: str) -> ErrorResponse:
        """Create a copy of an error with additional details."""
        return ErrorResponse(
            code=error.code,
            message=error.message,
            category=error.category,
            details=details
        )


def format_error(error: ErrorResponse) -> str:
    """Format error for display."""
    if error.details:
        return f"[{error.code}] {error.message}: {error.details}"
    return f"[{error.code}] {error.message}"


class BankGradeError(Exception):
    """Base exception carrying a structured ErrorResponse."""

    default_error: ErrorResponse = ErrorCodes.SCAN_FAILED

    def __init__(self, details: Optional[str] = None, error: Optional[ErrorResponse] = None):
        base = error or self.default_error
        self.error = ErrorCodes.with_details(base, details) if details else base
        super().__init__(format_error(self.error))

    @property
    def code(self) -> str:
        return self.error.code


class RegistryError(BankGradeError):
    """The target registry could not be loaded. Fatal for the whole run."""

    default_error = ErrorCodes.REG_INVALID_FORMAT


class UnknownMetricError(BankGradeError, KeyError):
    """A metric name was never registered in the taxonomy."""

    default_error = ErrorCodes.METRIC_UNKNOWN

    def __str__(self) -> str:
        return format_error(self.error)


class ScanError(BankGradeError):
    """A fatal condition for a single target's scan."""

    default_error = ErrorCodes.SCAN_FAILED


class TooManyRedirectsError(ScanError):
    default_error = ErrorCodes.SCAN_TOO_MANY_REDIRECTS


class InvalidStatusError(ScanError):
    default_error = ErrorCodes.SCAN_INVALID_STATUS


class TargetUnreachableError(ScanError):
    default_error = ErrorCodes.NET_UNREACHABLE
