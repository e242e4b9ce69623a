"""Library-specific exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class FluentHTTPError(Exception):
    """Base exception for all fluenthttp failures."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        response: httpx.Response | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.response = response
        self.cause = cause

    @property
    def status_code(self) -> int | None:
        if self.response is None:
            return None
        return self.response.status_code

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.error_code is None:
            return str(self.args[0])
        return f"{self.error_code}: {self.args[0]}"


class ConfigurationError(FluentHTTPError):
    """Raised when an option has the wrong type or an unsupported value."""

    def __init__(self, message: str, *, option: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, error_code="configuration", cause=cause)
        self.option = option


class RedirectPolicyError(FluentHTTPError):
    """Raised when the redirect policy refuses to follow a redirect.

    ``response`` carries the last redirect response that was received.
    """

    def __init__(
        self,
        message: str,
        *,
        response: httpx.Response | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, error_code="redirect_policy", response=response, cause=cause)


class RequestBuilderConsumedError(FluentHTTPError):
    """Raised when a request builder is executed a second time."""
