"""Errors raised by event data sources."""

from typing import Optional


class DataSourceError(Exception):
    """Base exception for event source errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkError(DataSourceError):
    """The source could not be reached."""


class AuthError(DataSourceError):
    """The API key was rejected (401) or lacks permission (403)."""


class NotFoundError(DataSourceError):
    """The requested resource does not exist (404)."""


class RateLimitError(DataSourceError):
    """Too many requests (429)."""


class ServerError(DataSourceError):
    """The source failed with a 5xx status."""


def error_for_status(status_code: Optional[int], message: Optional[str] = None) -> DataSourceError:
    """Map an HTTP status to the matching DataSourceError subclass."""
    if status_code is None:
        return NetworkError(message or "Network error: unable to reach the event source")
    if status_code in (401, 403):
        default = "Invalid API key" if status_code == 401 else "Access forbidden"
        return AuthError(message or default, status_code)
    if status_code == 404:
        return NotFoundError(message or "Resource not found", status_code)
    if status_code == 429:
        return RateLimitError(message or "Rate limit exceeded, try again later", status_code)
    if status_code >= 500:
        return ServerError(message or "Event source server error", status_code)
    return DataSourceError(message or f"Unexpected status {status_code}", status_code)
