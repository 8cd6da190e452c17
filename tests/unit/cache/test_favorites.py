"""Tests for the persisted favorites list."""

import pytest

pytestmark = pytest.mark.unit


async def test_add_and_list(favorites, event_factory):
    assert await favorites.add(event_factory("e1")) is True
    assert await favorites.add(event_factory("e2")) is True

    listed = await favorites.list_favorites()

    assert [favorite.id for favorite in listed] == ["e1", "e2"]
    assert all(favorite.is_favorite for favorite in listed)


async def test_add_duplicate_returns_false(favorites, event_factory):
    await favorites.add(event_factory("e1"))

    assert await favorites.add(event_factory("e1")) is False
    assert len(await favorites.list_favorites()) == 1


async def test_remove_returns_removed_record(favorites, event_factory):
    await favorites.add(event_factory("e1", "https://img.example.com/1.jpg"))

    removed = await favorites.remove("e1")

    assert removed is not None
    assert removed.image_url == "https://img.example.com/1.jpg"
    assert await favorites.remove("e1") is None
    assert not await favorites.is_favorite("e1")


async def test_favorites_persist_across_instances(kv_store, cache_config, event_factory):
    from localevents.cache.favorites import FavoritesStore

    await FavoritesStore(kv_store, cache_config).add(event_factory("e1"))

    assert await FavoritesStore(kv_store, cache_config).ids() == {"e1"}


async def test_corrupt_favorites_start_empty(favorites, kv_store, cache_config):
    await kv_store.set(cache_config.storage_key("favorites"), "[{broken")

    assert await favorites.list_favorites() == []
