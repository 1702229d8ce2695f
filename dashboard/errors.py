"""Dashboard error taxonomy.

Consumers only ever see a single message string (see ``error_to_message``);
the classes below exist for classification in logs and metrics.
"""

from typing import Any, Optional


class DashboardError(Exception):
    """Base exception for dashboard data errors."""
    kind = "unknown"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DashboardNetworkError(DashboardError):
    """The request never produced an HTTP response (connection, DNS, timeout)."""
    kind = "network"


class DashboardHttpError(DashboardError):
    """Non-2xx response."""
    kind = "http"

    def __init__(self, status: int, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.details = details


class MalformedResponseError(DashboardError):
    """2xx response whose body could not be interpreted."""
    kind = "malformed"


class MockComputationError(DashboardError):
    """The synchronous mock generator raised."""
    kind = "mock"


class FetcherNotConfiguredError(DashboardError):
    """Backend mode was selected for a query that has no fetcher."""
    kind = "config"


UNEXPECTED_ERROR_MESSAGE = "Unexpected error"


def error_kind(exc: BaseException) -> str:
    """Classification label used in logs and metrics."""
    if isinstance(exc, DashboardError):
        return exc.kind
    return "unknown"


def error_to_message(exc: Optional[BaseException]) -> str:
    """Human-readable message for any producer failure."""
    if exc is None:
        return UNEXPECTED_ERROR_MESSAGE
    if isinstance(exc, DashboardError):
        message = (exc.message or "").strip()
    else:
        message = str(exc).strip()
    return message or UNEXPECTED_ERROR_MESSAGE
