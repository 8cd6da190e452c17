"""Content-addressed cache of remote images on local disk.

Metadata for every cached file lives in a single versioned index stored in
the key-value store. Index read-modify-write cycles are serialized by one
``asyncio.Lock``; downloads run outside it so bulk pre-caching stays
concurrent.
"""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..config.settings import CacheConfig
from ..core.clock import Clock, now_ms, to_datetime
from .exceptions import CacheError, StorageError, TransferError
from .file_store import FileStore
from .keys import derive_image_key, image_extension
from .kv_store import KeyValueStore
from .models import (
    Event,
    FavoriteImageStats,
    ImageCacheEntry,
    ImageCacheIndex,
    ImageCacheStats,
    bytes_to_mb,
)

logger = logging.getLogger(__name__)


class ImageCache:
    """Local image files with TTL expiry, count/size limits and favorite pins."""

    def __init__(
        self,
        store: KeyValueStore,
        file_store: FileStore,
        config: CacheConfig,
        clock: Clock = now_ms,
    ):
        self.kv_store = store
        self.file_store = file_store
        self.config = config
        self.clock = clock
        self.image_dir = Path(config.image_dir)
        self._index_key = config.storage_key("image_cache_metadata")
        self._lock = asyncio.Lock()

    # -- index persistence -------------------------------------------------

    def _fresh_index(self) -> ImageCacheIndex:
        return ImageCacheIndex(schema_version=self.config.image_schema_version)

    async def _load_index(self) -> ImageCacheIndex:
        raw = await self.kv_store.get(self._index_key)
        if raw is None:
            return self._fresh_index()

        try:
            index = ImageCacheIndex.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Image cache index is corrupt, resetting: %s", e)
            return await self._reset()

        if index.schema_version != self.config.image_schema_version:
            logger.info(
                "Image cache index version %s != %s, clearing images",
                index.schema_version,
                self.config.image_schema_version,
            )
            return await self._reset()

        actual_total = sum(entry.size_bytes for entry in index.entries.values())
        if index.total_size_bytes != actual_total:
            logger.warning(
                "Image cache size total drifted (%d recorded, %d actual), correcting",
                index.total_size_bytes,
                actual_total,
            )
            index.total_size_bytes = actual_total
        return index

    async def _save_index(self, index: ImageCacheIndex) -> None:
        await self.kv_store.set(self._index_key, index.model_dump_json())

    async def _reset(self) -> ImageCacheIndex:
        await self.file_store.delete_dir(self.image_dir, ignore_missing=True)
        index = self._fresh_index()
        await self._save_index(index)
        return index

    def path_for(self, url: str) -> Path:
        """Deterministic local path for an image URL."""
        return self.image_dir / f"{derive_image_key(url)}{image_extension(url)}"

    async def _evict(self, index: ImageCacheIndex, entry: ImageCacheEntry) -> None:
        # Metadata goes even when the file delete fails; lookup later removes the orphan.
        index.entries.pop(entry.image_key, None)
        index.total_size_bytes = max(0, index.total_size_bytes - entry.size_bytes)
        await self._delete_file(entry.local_file_path)

    async def _delete_file(self, path: str) -> None:
        try:
            await self.file_store.delete(path, ignore_missing=True)
        except StorageError as e:
            logger.warning("Could not delete cached image %s: %s", path, e)

    # -- public API ----------------------------------------------------------

    async def ensure_directory(self) -> None:
        await self.file_store.ensure_dir(self.image_dir)

    async def lookup(self, url: str) -> Optional[str]:
        """Local path for ``url`` if a valid cached copy exists, else None.

        Heals inconsistencies on the way: metadata without a file is dropped,
        a file without metadata is deleted, an expired unpinned entry is
        evicted. Storage failures are logged and reported as a miss.
        """
        try:
            async with self._lock:
                return await self._lookup_locked(url)
        except StorageError as e:
            logger.warning("Image lookup failed for %s: %s", url, e)
            return None

    async def _lookup_locked(self, url: str) -> Optional[str]:
        index = await self._load_index()
        key = derive_image_key(url)
        entry = index.entries.get(key)

        file_path = entry.local_file_path if entry else str(self.path_for(url))
        file_stat = await self.file_store.stat(file_path)

        if not file_stat.exists:
            if entry is not None:
                logger.debug("Cached image file vanished for %s, dropping metadata", url)
                index.entries.pop(key)
                index.total_size_bytes = max(0, index.total_size_bytes - entry.size_bytes)
                await self._save_index(index)
            return None

        if entry is None:
            logger.debug("Removing orphaned image file %s", file_path)
            await self.file_store.delete(file_path, ignore_missing=True)
            return None

        if entry.source_url != url:
            # Another URL owns this key; treat as a miss so the next store replaces it.
            return None

        if not entry.is_favorite_pinned and entry.is_expired(self.clock(), self.config.image_ttl_ms):
            logger.debug("Cached image for %s expired", url)
            await self._evict(index, entry)
            await self._save_index(index)
            return None

        return entry.local_file_path

    async def store(
        self, url: str, owner_record_id: Optional[str] = None, pinned: bool = False
    ) -> Optional[str]:
        """Ensure ``url`` is cached and return its local path.

        Returns None when the freshly stored image was evicted immediately by
        the size/count limits.

        Raises:
            TransferError: The download did not return 200 (nothing is recorded)
            StorageError: Disk or key-value failure
        """
        cached = await self.lookup(url)
        if cached is not None:
            return cached

        dest = self.path_for(url)
        await self.file_store.ensure_dir(self.image_dir)
        result = await self.file_store.download(url, dest)
        if result.status_code != 200:
            raise TransferError(
                f"Image download returned status {result.status_code}",
                url=url,
                status_code=result.status_code,
            )

        key = derive_image_key(url)
        async with self._lock:
            index = await self._load_index()
            prior = index.entries.get(key)
            # A pin belongs to its URL, not to a colliding key.
            keep_pin = prior is not None and prior.source_url == url and prior.is_favorite_pinned
            entry = ImageCacheEntry(
                image_key=key,
                local_file_path=str(dest),
                source_url=url,
                created_at=self.clock(),
                size_bytes=result.file_size,
                owner_record_id=owner_record_id,
                schema_version=self.config.image_schema_version,
                is_favorite_pinned=pinned or keep_pin,
            )
            if prior is not None:
                index.total_size_bytes -= prior.size_bytes
                if prior.local_file_path != entry.local_file_path:
                    await self._delete_file(prior.local_file_path)
            index.entries[key] = entry
            index.total_size_bytes += entry.size_bytes

            await self._enforce_limits_locked(index)
            await self._save_index(index)

        if key not in index.entries:
            logger.debug("Image %s was evicted right after caching", url)
            return None

        logger.debug("Cached image %s (%d bytes)", url, entry.size_bytes)
        return entry.local_file_path

    async def cache_many(self, records: Iterable[Event]) -> int:
        """Best-effort caching of every distinct image URL in ``records``.

        Failures are isolated per URL and logged. Returns the number of
        images that ended up cached.
        """
        owners: dict[str, str] = {}
        for record in records:
            if record.image_url and record.image_url not in owners:
                owners[record.image_url] = record.id

        if not owners:
            return 0

        results = await asyncio.gather(
            *(self.store(url, owner) for url, owner in owners.items()),
            return_exceptions=True,
        )

        cached = 0
        for url, result in zip(owners, results):
            if isinstance(result, CacheError):
                logger.warning("Failed to cache image %s: %s", url, result)
            elif isinstance(result, BaseException):
                logger.error("Unexpected error caching image %s: %r", url, result)
            elif result is not None:
                cached += 1

        logger.debug("Cached %d/%d images", cached, len(owners))
        return cached

    async def pin(self, url: str, owner_record_id: Optional[str] = None) -> Optional[str]:
        """Cache ``url`` if needed and exempt it from expiry and eviction."""
        path = await self.lookup(url)
        if path is None:
            path = await self.store(url, owner_record_id, pinned=True)

        key = derive_image_key(url)
        async with self._lock:
            index = await self._load_index()
            entry = index.entries.get(key)
            if entry is None or entry.source_url != url:
                logger.debug("Image %s disappeared before it could be pinned", url)
                return None
            if not entry.is_favorite_pinned:
                entry.is_favorite_pinned = True
                await self._save_index(index)
        return path

    async def unpin(self, url: str) -> bool:
        """Make ``url`` subject to normal expiry again. The file stays."""
        key = derive_image_key(url)
        async with self._lock:
            index = await self._load_index()
            entry = index.entries.get(key)
            if entry is None or not entry.is_favorite_pinned:
                return False
            entry.is_favorite_pinned = False
            await self._save_index(index)
        return True

    async def enforce_limits(self) -> int:
        """Apply count and size limits; returns the number of evicted images."""
        async with self._lock:
            index = await self._load_index()
            removed = await self._enforce_limits_locked(index)
            if removed:
                await self._save_index(index)
        return removed

    async def _enforce_limits_locked(self, index: ImageCacheIndex) -> int:
        candidates = index.eviction_candidates()
        removed = 0

        while len(index.entries) > self.config.max_images and candidates:
            await self._evict(index, candidates.pop(0))
            removed += 1

        if index.total_size_bytes > self.config.max_cache_size_bytes:
            target = self.config.eviction_target_bytes
            while index.total_size_bytes > target and candidates:
                await self._evict(index, candidates.pop(0))
                removed += 1

        if removed:
            logger.info(
                "Evicted %d images (now %d images, %.2f MB)",
                removed,
                len(index.entries),
                bytes_to_mb(index.total_size_bytes),
            )
        if (
            len(index.entries) > self.config.max_images
            or index.total_size_bytes > self.config.max_cache_size_bytes
        ):
            logger.warning("Pinned favorites alone exceed image cache limits")
        return removed

    async def cleanup_expired(self) -> int:
        """Evict every unpinned image older than the image TTL."""
        async with self._lock:
            index = await self._load_index()
            now = self.clock()
            expired = [
                entry
                for entry in index.entries.values()
                if not entry.is_favorite_pinned and entry.is_expired(now, self.config.image_ttl_ms)
            ]
            for entry in expired:
                await self._evict(index, entry)
            index.last_sweep_at = now
            await self._save_index(index)

        if expired:
            logger.info("Removed %d expired images", len(expired))
        return len(expired)

    async def clear_all(self) -> None:
        """Remove every image, pinned ones included."""
        async with self._lock:
            await self._reset()
        logger.info("Image cache cleared")

    async def stats(self) -> ImageCacheStats:
        async with self._lock:
            index = await self._load_index()
        return ImageCacheStats(
            total_images=len(index.entries),
            total_size_bytes=index.total_size_bytes,
            total_size_mb=bytes_to_mb(index.total_size_bytes),
            last_cleanup=to_datetime(index.last_sweep_at),
        )

    async def favorites_stats(self) -> FavoriteImageStats:
        async with self._lock:
            index = await self._load_index()
        pinned = [entry for entry in index.entries.values() if entry.is_favorite_pinned]
        size = sum(entry.size_bytes for entry in pinned)
        return FavoriteImageStats(
            total_favorite_images=len(pinned),
            favorite_cache_size=size,
            favorite_cache_size_mb=bytes_to_mb(size),
        )
