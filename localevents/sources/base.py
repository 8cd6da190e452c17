"""Contract for the remote event search API."""

from typing import Protocol

from ..cache.models import Event, SearchParams


class EventSource(Protocol):
    """Anything that can fetch one page of events.

    Implementations raise ``DataSourceError`` subclasses on failure.
    """

    async def fetch_records(self, params: SearchParams) -> list[Event]: ...
