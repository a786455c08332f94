"""Exception classes for Errors & Echoes.

Version: 0.1.0

Attribution and report building never raise into the error-capture path;
these types are used by configuration loading and by callers that want a
structured error out of the dispatch layer.
"""

from __future__ import annotations

from typing import Any, Optional


class EchoesError(Exception):
    """Base exception for all Errors & Echoes errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (endpoint name, field, etc.)
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(EchoesError):
    """Error loading or validating configuration.

    Raised when an endpoint registration is missing its name or URL, and by
    the CLI when a named endpoint is not configured.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.field = field
        if field:
            self.details["field"] = field


class EndpointError(EchoesError):
    """Error related to a specific collection endpoint."""

    def __init__(
        self,
        message: str,
        endpoint_name: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.endpoint_name = endpoint_name
        self.details["endpoint"] = endpoint_name

    def __str__(self) -> str:
        return f"[{self.endpoint_name}] {self.message}"


class DeliveryError(EndpointError):
    """A single delivery attempt failed.

    The dispatcher converts these into failed outcomes; they never escape
    ``ReportDispatcher.deliver``.
    """

    def __init__(
        self,
        message: str,
        endpoint_name: str,
        http_status: Optional[int] = None,
        tag: str = "delivery-failed",
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, endpoint_name, details)
        self.http_status = http_status
        self.tag = tag
        if http_status is not None:
            self.details["http_status"] = http_status
        self.details["tag"] = tag
