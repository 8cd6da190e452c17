"""Event data source contract and error taxonomy."""

from .base import EventSource
from .exceptions import (
    AuthError,
    DataSourceError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    error_for_status,
)

__all__ = [
    "AuthError",
    "DataSourceError",
    "EventSource",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "error_for_status",
]
