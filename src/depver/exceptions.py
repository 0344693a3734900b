"""
Custom exception hierarchy for depver.

All exceptions inherit from DepverError, which provides optional context
for structured error handling and logging. Registry failures live in
depver.registry.errors alongside their classifier.
"""

from __future__ import annotations

from typing import Any


class DepverError(Exception):
    """Base exception for all depver errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(DepverError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Unknown ecosystem in CACHE_TTL_OVERRIDES
        - Retry base delay larger than the cap
    """

    pass


class InvalidRequestError(DepverError):
    """Raised when a tool call is malformed.

    Context should include:
        - field: The offending argument
        - value: The rejected value (or its size)
        - limit: The limit that was exceeded, if any
    """

    pass
