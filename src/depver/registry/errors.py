"""
Registry error classification.

Maps transport and HTTP outcomes onto a uniform RegistryError
(status_code, endpoint, message) and an ErrorKind:

- NOT_FOUND: package or all qualifying versions absent (terminal)
- RATE_LIMITED / SERVER_ERROR: retried up to the attempt cap, then terminal
- CLIENT_ERROR: any other 4xx (terminal, immediate)
- NETWORK_ERROR: no response or timeout; status 0 once retries are exhausted
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from depver.exceptions import DepverError

NETWORK_STATUS = 0


class ErrorKind(str, Enum):
    """Classification of a registry failure."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    NETWORK_ERROR = "network_error"


def versions_endpoint(ecosystem: str, name: str) -> str:
    """Endpoint label used in errors for the versions lookup."""
    return f"GET /systems/{ecosystem}/packages/{name}"


def is_retryable_status(status: int | None) -> bool:
    """Whether a response status (None/0 for no response) warrants a retry."""
    if not status:
        return True
    return status in (408, 429) or status >= 500


def classify_status(status: int) -> ErrorKind:
    """Map an HTTP status (0 for network failures) to an ErrorKind."""
    if status == NETWORK_STATUS:
        return ErrorKind.NETWORK_ERROR
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status in (408, 429):
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.CLIENT_ERROR


class RegistryError(DepverError):
    """Terminal failure talking to the registry.

    Constructed where the failure is detected and propagated unchanged;
    never retried once raised.

    Attributes:
        status_code: HTTP status, or 0 for network errors.
        endpoint: Human-readable endpoint, e.g. "GET /systems/NPM/packages/react".
    """

    def __init__(self, status_code: int, endpoint: str, message: str) -> None:
        super().__init__(message, context={"status_code": status_code, "endpoint": endpoint})
        self.status_code = status_code
        self.endpoint = endpoint

    @property
    def kind(self) -> ErrorKind:
        return classify_status(self.status_code)

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the uniform error object."""
        return {
            "statusCode": self.status_code,
            "endpoint": self.endpoint,
            "message": self.message,
            "kind": self.kind.value,
        }


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Build the caller-facing error object for any exception."""
    if isinstance(exc, RegistryError):
        return exc.to_dict()
    if isinstance(exc, DepverError):
        return {"message": exc.message, **({"context": exc.context} if exc.context else {})}
    return {"message": str(exc) or exc.__class__.__name__}
