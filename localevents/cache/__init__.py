"""Two-tier offline cache: event result pages and their images."""

from .coordinator import CacheCoordinator, SweepHandle
from .exceptions import (
    CacheError,
    CacheNotFoundError,
    CacheValidationError,
    StorageError,
    TransferError,
)
from .favorites import FavoritesStore
from .file_store import FileStore, LocalFileStore
from .image_cache import ImageCache
from .keys import derive_image_key, derive_key, select_ttl
from .kv_store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore, open_store
from .models import CacheStats, Event, FetchResult, SearchParams
from .record_cache import RecordCache

__all__ = [
    "CacheCoordinator",
    "CacheError",
    "CacheNotFoundError",
    "CacheStats",
    "CacheValidationError",
    "Event",
    "FavoritesStore",
    "FetchResult",
    "FileStore",
    "ImageCache",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LocalFileStore",
    "RecordCache",
    "SQLiteKeyValueStore",
    "SearchParams",
    "StorageError",
    "SweepHandle",
    "TransferError",
    "derive_image_key",
    "derive_key",
    "open_store",
    "select_ttl",
]
