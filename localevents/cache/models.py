"""Models for cached event pages, cached images and their indexes."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """An event record as returned by the discovery API.

    The cache treats it as opaque apart from ``id`` and ``image_url``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    date: str
    venue: str = ""
    city: str = ""
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    description: Optional[str] = None
    price_range: Optional[str] = Field(default=None, alias="priceRange")
    url: Optional[str] = None
    is_favorite: bool = Field(default=False, alias="isFavorite")


class SearchParams(BaseModel):
    """Query parameters for one page of event results."""

    model_config = ConfigDict(populate_by_name=True)

    city: Optional[str] = "Paris"
    keyword: Optional[str] = None
    start_date_time: Optional[str] = Field(default=None, alias="startDateTime")
    end_date_time: Optional[str] = Field(default=None, alias="endDateTime")
    page: int = Field(default=0, ge=0)
    size: int = Field(default=20, ge=1, alias="pageSize")

    @property
    def has_keyword(self) -> bool:
        return bool(self.keyword and self.keyword.strip())


class RecordCacheEntry(BaseModel):
    """One cached page of records."""

    key: str
    records: list[Event]
    search_params: SearchParams
    created_at: int
    ttl_ms: int
    schema_version: str

    def is_expired(self, now: int) -> bool:
        return now - self.created_at > self.ttl_ms


class RecordCacheIndex(BaseModel):
    """Insertion-ordered list of cached record keys, oldest first."""

    ordered_keys: list[str] = Field(default_factory=list)
    last_sweep_at: Optional[int] = None
    schema_version: str


class ImageCacheEntry(BaseModel):
    """Metadata for one image file owned by the image cache."""

    image_key: str
    local_file_path: str
    source_url: str
    created_at: int
    size_bytes: int = Field(ge=0)
    owner_record_id: Optional[str] = None
    schema_version: str
    is_favorite_pinned: bool = False

    def is_expired(self, now: int, ttl_ms: int) -> bool:
        return now - self.created_at > ttl_ms


class ImageCacheIndex(BaseModel):
    """All image entries plus the running size total."""

    entries: dict[str, ImageCacheEntry] = Field(default_factory=dict)
    total_size_bytes: int = 0
    last_sweep_at: Optional[int] = None
    schema_version: str

    def eviction_candidates(self) -> list[ImageCacheEntry]:
        """Unpinned entries, oldest first."""
        return sorted(
            (entry for entry in self.entries.values() if not entry.is_favorite_pinned),
            key=lambda entry: entry.created_at,
        )


class RecordCacheStats(BaseModel):
    entry_count: int = 0
    total_size_bytes: int = 0
    last_cleanup: Optional[datetime] = None


class ImageCacheStats(BaseModel):
    total_images: int = 0
    total_size_bytes: int = 0
    total_size_mb: float = 0.0
    last_cleanup: Optional[datetime] = None


class FavoriteImageStats(BaseModel):
    total_favorite_images: int = 0
    favorite_cache_size: int = 0
    favorite_cache_size_mb: float = 0.0


class CacheStats(BaseModel):
    """Combined diagnostics for both tiers."""

    records: RecordCacheStats
    images: ImageCacheStats
    favorites: FavoriteImageStats


class FetchResult(BaseModel):
    records: list[Event]
    from_cache: bool = False


class DownloadResult(BaseModel):
    status_code: int
    file_size: int = 0


class FileStat(BaseModel):
    exists: bool
    size: int = 0


def bytes_to_mb(size_bytes: int) -> float:
    """Megabytes rounded to two decimals, for display only."""
    return round(size_bytes / (1024 * 1024), 2)
