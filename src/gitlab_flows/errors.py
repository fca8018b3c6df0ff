"""Custom exception types for the GitLab reporting flows."""

from __future__ import annotations

from typing import Optional


class FlowError(Exception):
    """Base exception for every failure that aborts a flow run."""


class ConfigurationError(FlowError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(ConfigurationError):
    """Raised when GitLab credentials are unavailable."""


class TransportError(FlowError):
    """Raised when an HTTP request fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class DecodeError(FlowError):
    """Raised when a response declared as JSON cannot be parsed."""

    def __init__(self, message: str, body: str) -> None:
        super().__init__(message)
        self.body = body


class UnknownFlowError(FlowError):
    """Raised when dispatching a flow name that was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown flow: {name}")
        self.name = name


class InvalidReferenceError(FlowError):
    """Raised when a merge request URL cannot be parsed."""


class ExternalCommandError(FlowError):
    """Raised when git or the summarizer exits with a non-zero status.

    ``command`` and ``stderr`` are stored already redacted.
    """

    def __init__(self, message: str, command: str = "", returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ToolArgumentError(FlowError):
    """Raised when a tool call is missing a required argument or has a wrong type."""
