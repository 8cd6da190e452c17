"""Configuration management for localevents."""

from .settings import (
    CacheConfig,
    LocalEventsSettings,
    LoggingSettings,
    get_settings,
    load_settings,
    reset_settings,
)

__all__ = [
    "CacheConfig",
    "LocalEventsSettings",
    "LoggingSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
