"""Core infrastructure shared by the cache tiers."""

from .background import BackgroundTasks
from .clock import now_ms, to_datetime

__all__ = ["BackgroundTasks", "now_ms", "to_datetime"]
