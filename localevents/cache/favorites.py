"""Persisted list of the user's favorite events."""

import asyncio
import logging
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from ..config.settings import CacheConfig
from .kv_store import KeyValueStore
from .models import Event

logger = logging.getLogger(__name__)

_EVENT_LIST = TypeAdapter(list[Event])


class FavoritesStore:
    """Favorite events stored as one JSON list, most recently added last."""

    def __init__(self, store: KeyValueStore, config: CacheConfig):
        self.store = store
        self._key = config.storage_key("favorites")
        self._lock = asyncio.Lock()

    async def _load(self) -> list[Event]:
        raw = await self.store.get(self._key)
        if raw is None:
            return []
        try:
            return _EVENT_LIST.validate_json(raw)
        except ValidationError as e:
            logger.warning("Favorites list is corrupt, starting empty: %s", e)
            return []

    async def _save(self, favorites: list[Event]) -> None:
        await self.store.set(self._key, _EVENT_LIST.dump_json(favorites).decode("utf-8"))

    async def list_favorites(self) -> list[Event]:
        async with self._lock:
            return await self._load()

    async def get(self, record_id: str) -> Optional[Event]:
        for favorite in await self.list_favorites():
            if favorite.id == record_id:
                return favorite
        return None

    async def is_favorite(self, record_id: str) -> bool:
        return await self.get(record_id) is not None

    async def ids(self) -> set[str]:
        return {favorite.id for favorite in await self.list_favorites()}

    async def add(self, record: Event) -> bool:
        """Add ``record``; False if it was already a favorite."""
        async with self._lock:
            favorites = await self._load()
            if any(favorite.id == record.id for favorite in favorites):
                return False
            favorites.append(record.model_copy(update={"is_favorite": True}))
            await self._save(favorites)
        return True

    async def remove(self, record_id: str) -> Optional[Event]:
        """Remove and return the favorite with ``record_id``, if any."""
        async with self._lock:
            favorites = await self._load()
            for position, favorite in enumerate(favorites):
                if favorite.id == record_id:
                    del favorites[position]
                    await self._save(favorites)
                    return favorite
        return None
