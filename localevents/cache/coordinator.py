"""Lifecycle glue between the record cache, the image cache and favorites."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..config.settings import CacheConfig
from ..core.http_client import close_all_clients
from ..sources.exceptions import DataSourceError
from .exceptions import CacheError, CacheNotFoundError
from .favorites import FavoritesStore
from .file_store import LocalFileStore
from .image_cache import ImageCache
from .keys import ParamsLike, coerce_params
from .kv_store import open_store
from .models import CacheStats, Event, FetchResult
from .record_cache import RecordCache

if TYPE_CHECKING:
    from ..sources.base import EventSource

logger = logging.getLogger(__name__)


class SweepHandle:
    """Disposer for a periodic sweep; call it (or ``cancel()``) to stop."""

    def __init__(self, task: "asyncio.Task[None]"):
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    def __call__(self) -> None:
        self.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    async def wait(self) -> None:
        """Wait for the sweep task to finish after cancellation."""
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class CacheCoordinator:
    """Application-facing entry point for the offline cache."""

    def __init__(
        self,
        record_cache: RecordCache,
        image_cache: ImageCache,
        favorites: Optional[FavoritesStore] = None,
        source: Optional["EventSource"] = None,
        config: Optional[CacheConfig] = None,
    ):
        self.record_cache = record_cache
        self.image_cache = image_cache
        self.favorites = favorites or FavoritesStore(record_cache.store, record_cache.config)
        self.source = source
        self.config = config or record_cache.config
        self._initialized = False
        self._sweeps: set[SweepHandle] = set()

    @classmethod
    def from_config(cls, config: CacheConfig, source: Optional["EventSource"] = None) -> "CacheCoordinator":
        """Production wiring: SQLite key-value store and local image files."""
        store = open_store(config.database_file)
        file_store = LocalFileStore(
            max_image_bytes=config.max_image_bytes,
            timeout_seconds=config.download_timeout_seconds,
        )
        image_cache = ImageCache(store, file_store, config)
        record_cache = RecordCache(store, config, image_cache=image_cache)
        return cls(record_cache, image_cache, FavoritesStore(store, config), source, config)

    async def initialize(self) -> CacheStats:
        """Prepare storage and purge anything that expired while the app was closed.

        Safe to call more than once. Cleanup failures are logged, not raised.
        """
        if not self._initialized:
            try:
                await self.image_cache.ensure_directory()
                removed = await self.record_cache.cleanup()
                logger.debug("Startup cleanup removed %d record pages", removed)
            except Exception:
                logger.exception("Cache initialization cleanup failed")
            self._initialized = True

        stats = await self.stats()
        logger.info(
            "Cache ready: %d pages (%d bytes), %d images (%.2f MB), %d favorite images",
            stats.records.entry_count,
            stats.records.total_size_bytes,
            stats.images.total_images,
            stats.images.total_size_mb,
            stats.favorites.total_favorite_images,
        )
        return stats

    def schedule_periodic_sweep(self, interval_ms: Optional[int] = None) -> SweepHandle:
        """Run cleanup every ``interval_ms`` until the returned handle is called."""
        if interval_ms is None:
            interval_ms = self.config.sweep_interval_ms
        interval = interval_ms / 1000
        task = asyncio.create_task(self._sweep_loop(interval), name="cache-sweep")
        handle = SweepHandle(task)
        self._sweeps.add(handle)
        task.add_done_callback(lambda _task: self._sweeps.discard(handle))
        logger.debug("Scheduled cache sweep every %.0f seconds", interval)
        return handle

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                removed = await self.record_cache.cleanup()
                logger.debug("Periodic sweep removed %d record pages", removed)
            except Exception:
                logger.exception("Periodic cache sweep failed")

    async def fetch_events(self, params: ParamsLike, force_refresh: bool = False) -> FetchResult:
        """Cache-first fetch of one page of events.

        A forced refresh that fails falls back to a still-valid cached page.

        Raises:
            DataSourceError: The source failed and nothing usable is cached
            CacheNotFoundError: Cache miss with no source configured
        """
        search_params = coerce_params(params)

        if not force_refresh:
            cached = await self.record_cache.get(search_params)
            if cached is not None:
                logger.debug("Serving %d events from cache", len(cached))
                return FetchResult(records=await self._mark_favorites(cached), from_cache=True)

        if self.source is None:
            raise CacheNotFoundError("No cached events and no event source configured")

        try:
            records = await self.source.fetch_records(search_params)
        except DataSourceError as e:
            if force_refresh:
                cached = await self.record_cache.get(search_params)
                if cached is not None:
                    logger.warning("Refresh failed (%s), serving cached events", e)
                    return FetchResult(records=await self._mark_favorites(cached), from_cache=True)
            raise

        try:
            await self.record_cache.put(records, search_params)
        except CacheError:
            logger.exception("Failed to cache fetched events")

        return FetchResult(records=await self._mark_favorites(records), from_cache=False)

    async def _mark_favorites(self, records: list[Event]) -> list[Event]:
        try:
            favorite_ids = await self.favorites.ids()
        except CacheError as e:
            logger.warning("Could not read favorites: %s", e)
            return records
        return [
            record
            if record.is_favorite == (record.id in favorite_ids)
            else record.model_copy(update={"is_favorite": record.id in favorite_ids})
            for record in records
        ]

    async def add_favorite(self, record: Event) -> bool:
        """Persist ``record`` as a favorite and pin its image.

        Image failures are logged; the favorite itself is still stored.
        """
        added = await self.favorites.add(record)
        if record.image_url:
            try:
                await self.image_cache.pin(record.image_url, record.id)
            except CacheError as e:
                logger.warning("Could not pin image for favorite %s: %s", record.id, e)
        return added

    async def remove_favorite(self, record_id: str) -> bool:
        """Drop a favorite and unpin its image unless another favorite shares it."""
        removed = await self.favorites.remove(record_id)
        if removed is None:
            return False

        if removed.image_url:
            remaining = await self.favorites.list_favorites()
            if any(favorite.image_url == removed.image_url for favorite in remaining):
                logger.debug("Image for %s still used by another favorite", record_id)
            else:
                try:
                    await self.image_cache.unpin(removed.image_url)
                except CacheError as e:
                    logger.warning("Could not unpin image for %s: %s", record_id, e)
        return True

    async def toggle_favorite(self, record: Event) -> bool:
        """Flip favorite state; returns True when ``record`` is now a favorite."""
        if await self.favorites.is_favorite(record.id):
            await self.remove_favorite(record.id)
            return False
        await self.add_favorite(record)
        return True

    async def stats(self) -> CacheStats:
        return CacheStats(
            records=await self.record_cache.stats(),
            images=await self.image_cache.stats(),
            favorites=await self.image_cache.favorites_stats(),
        )

    async def cleanup_now(self) -> int:
        """Explicit sweep of both tiers; storage errors propagate."""
        await self.record_cache.wait_for_background_tasks()
        return await self.record_cache.cleanup()

    async def clear_all(self) -> None:
        """Explicitly empty both tiers, favorite images included."""
        await self.record_cache.wait_for_background_tasks()
        await self.record_cache.clear_all()

    async def close(self) -> None:
        for handle in list(self._sweeps):
            handle.cancel()
            await handle.wait()
        await self.record_cache.wait_for_background_tasks()
        await close_all_clients()
