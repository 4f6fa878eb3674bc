from __future__ import annotations


class OrgActivityError(Exception):
    """Base class for every error that should fail a run with a readable message."""


class ConfigError(OrgActivityError):
    """Raised when a required input is missing or malformed."""


class InvalidWindowError(OrgActivityError):
    """Raised when neither `since` nor `activity_days` yields a usable date."""


class ReportWriteError(OrgActivityError):
    """Raised when the output directory or a report file cannot be written."""


class TransportError(OrgActivityError):
    """An HTTP/GraphQL call failed after the client's retries were exhausted."""

    def __init__(self, message: str, *, status: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class RunTimeoutError(TransportError):
    """Raised when the overall run deadline passes before a request is sent."""
