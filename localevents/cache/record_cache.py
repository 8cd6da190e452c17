"""TTL cache of event result pages in the key-value store."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional

from pydantic import ValidationError

from ..config.settings import CacheConfig
from ..core.background import BackgroundTasks
from ..core.clock import Clock, now_ms, to_datetime
from .exceptions import CacheError, StorageError
from .image_cache import ImageCache
from .keys import ParamsLike, coerce_params, derive_key, select_ttl
from .kv_store import KeyValueStore
from .models import Event, RecordCacheEntry, RecordCacheIndex, RecordCacheStats

logger = logging.getLogger(__name__)


class RecordCache:
    """Result pages keyed by normalized search parameters.

    At most ``max_record_entries`` pages are kept; the oldest inserted page
    is dropped first. Storing a page also kicks off best-effort background
    caching of its images.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: CacheConfig,
        image_cache: Optional[ImageCache] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.config = config
        self.image_cache = image_cache
        self.clock = clock
        self._index_key = config.storage_key("cache_metadata")
        self._lock = asyncio.Lock()
        self._background = BackgroundTasks("image-precache")

    def _entry_key(self, key: str) -> str:
        return self.config.storage_key(f"events_cache_{key}")

    def is_valid(self, entry: RecordCacheEntry) -> bool:
        """Fresh and written by the current schema version."""
        return (
            entry.schema_version == self.config.record_schema_version
            and not entry.is_expired(self.clock())
        )

    def select_ttl(self, params: ParamsLike) -> int:
        return select_ttl(params, self.config)

    # -- index persistence -------------------------------------------------

    def _fresh_index(self) -> RecordCacheIndex:
        return RecordCacheIndex(schema_version=self.config.record_schema_version)

    async def _load_index(self) -> RecordCacheIndex:
        raw = await self.store.get(self._index_key)
        if raw is None:
            return self._fresh_index()

        try:
            index = RecordCacheIndex.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Record cache index is corrupt, starting fresh: %s", e)
            await self.store.delete(self._index_key)
            return self._fresh_index()

        if index.schema_version != self.config.record_schema_version:
            logger.info(
                "Record cache index version %s != %s, purging %d entries",
                index.schema_version,
                self.config.record_schema_version,
                len(index.ordered_keys),
            )
            for key in index.ordered_keys:
                await self.store.delete(self._entry_key(key))
            await self.store.delete(self._index_key)
            return self._fresh_index()

        return index

    async def _save_index(self, index: RecordCacheIndex) -> None:
        await self.store.set(self._index_key, index.model_dump_json())

    async def _read_entry(self, key: str) -> Optional[RecordCacheEntry]:
        raw = await self.store.get(self._entry_key(key))
        if raw is None:
            return None
        try:
            return RecordCacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding corrupt record cache entry %s: %s", key, e)
            return None

    async def _delete_untracked(self, key: str) -> None:
        try:
            await self.store.delete(self._entry_key(key))
        except StorageError as e:
            logger.warning("Could not remove untracked record cache entry %s: %s", key, e)

    # -- public API ----------------------------------------------------------

    async def put(
        self,
        records: Sequence[Event],
        params: ParamsLike,
        ttl_ms: Optional[int] = None,
    ) -> str:
        """Store one page of records and return its cache key.

        Raises:
            StorageError: The entry or index could not be written
        """
        search_params = coerce_params(params)
        key = derive_key(search_params)
        entry = RecordCacheEntry(
            key=key,
            records=list(records),
            search_params=search_params,
            created_at=self.clock(),
            ttl_ms=ttl_ms if ttl_ms is not None else self.select_ttl(search_params),
            schema_version=self.config.record_schema_version,
        )

        async with self._lock:
            index = await self._load_index()
            is_new = key not in index.ordered_keys
            await self.store.set(self._entry_key(key), entry.model_dump_json())

            if is_new:
                index.ordered_keys.append(key)

            try:
                while len(index.ordered_keys) > self.config.max_record_entries:
                    oldest = index.ordered_keys.pop(0)
                    await self.store.delete(self._entry_key(oldest))
                    logger.debug("Evicted oldest record cache entry %s", oldest)

                await self._save_index(index)
            except StorageError:
                if is_new:
                    # Keep every persisted entry reachable from the index.
                    await self._delete_untracked(key)
                raise

        logger.debug("Cached %d records under %s (ttl %d ms)", len(entry.records), key, entry.ttl_ms)

        if self.image_cache is not None and any(record.image_url for record in entry.records):
            self._background.spawn(self.image_cache.cache_many(entry.records), label=f"precache-{key}")

        return key

    async def get(self, params: ParamsLike) -> Optional[list[Event]]:
        """Cached records for ``params``, or None on a miss.

        Never raises: storage failures are logged and reported as a miss.
        Stale or unreadable entries are removed on the way.
        """
        try:
            key = derive_key(params)
            entry = await self._read_entry(key)
            if entry is not None and self.is_valid(entry):
                return entry.records

            if entry is not None or await self.store.get(self._entry_key(key)) is not None:
                await self._discard(key)
            return None
        except CacheError as e:
            logger.warning("Record cache read failed, treating as miss: %s", e)
            return None

    async def _discard(self, key: str) -> None:
        async with self._lock:
            # A concurrent put may have replaced the entry since it was read.
            entry = await self._read_entry(key)
            if entry is not None and self.is_valid(entry):
                return
            await self.store.delete(self._entry_key(key))
            index = await self._load_index()
            if key in index.ordered_keys:
                index.ordered_keys.remove(key)
                await self._save_index(index)
        logger.debug("Discarded invalid record cache entry %s", key)

    async def cleanup(self) -> int:
        """Purge invalid entries from both tiers; returns purged record pages.

        Raises:
            StorageError: The sweep could not read or write the store
        """
        async with self._lock:
            index = await self._load_index()
            retained: list[str] = []
            removed = 0
            for key in index.ordered_keys:
                entry = await self._read_entry(key)
                if entry is not None and self.is_valid(entry):
                    retained.append(key)
                else:
                    await self.store.delete(self._entry_key(key))
                    removed += 1

            index.ordered_keys = retained
            index.last_sweep_at = self.clock()
            await self._save_index(index)

        if removed:
            logger.info("Removed %d expired record cache entries", removed)

        if self.image_cache is not None:
            await self.image_cache.cleanup_expired()
        return removed

    async def clear_all(self) -> None:
        """Delete every cached page and every cached image.

        Raises:
            StorageError: Something could not be deleted
        """
        # Pending pre-caching would otherwise repopulate the emptied image tier.
        await self._background.cancel_all()

        async with self._lock:
            index = await self._load_index()
            for key in index.ordered_keys:
                await self.store.delete(self._entry_key(key))
            await self.store.delete(self._index_key)

        if self.image_cache is not None:
            await self.image_cache.clear_all()
        logger.info("Record cache cleared (%d entries)", len(index.ordered_keys))

    async def stats(self) -> RecordCacheStats:
        async with self._lock:
            index = await self._load_index()
            entry_count = 0
            total_size = 0
            for key in index.ordered_keys:
                raw = await self.store.get(self._entry_key(key))
                if raw is not None:
                    entry_count += 1
                    total_size += len(raw.encode("utf-8"))

        return RecordCacheStats(
            entry_count=entry_count,
            total_size_bytes=total_size,
            last_cleanup=to_datetime(index.last_sweep_at),
        )

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending image pre-caching to settle."""
        await self._background.drain()

    @property
    def pending_background_tasks(self) -> int:
        return self._background.pending

