"""Shared fixtures for localevents tests."""

from collections import Counter
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from localevents.cache.favorites import FavoritesStore
from localevents.cache.file_store import LocalFileStore
from localevents.cache.image_cache import ImageCache
from localevents.cache.kv_store import InMemoryKeyValueStore
from localevents.cache.models import Event
from localevents.cache.record_cache import RecordCache
from localevents.config.settings import CacheConfig, reset_settings

T0 = 1_700_000_000_000


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "critical_path: Core cache behaviour")
    config.addinivalue_line("markers", "smoke: Quick end-to-end checks")


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class ImageServer:
    """httpx MockTransport handler serving fake image bodies.

    Body size comes from a ``size`` query parameter (default 100 bytes);
    ``statuses`` overrides the response status per URL.
    """

    def __init__(self) -> None:
        self.requests: Counter[str] = Counter()
        self.statuses: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        status = self.statuses.get(url, 200)
        if status != 200:
            return httpx.Response(status, content=b"error")
        query = parse_qs(urlsplit(url).query)
        size = int(query.get("size", ["100"])[0])
        return httpx.Response(200, content=b"x" * size, headers={"Content-Type": "image/jpeg"})

    @property
    def total_requests(self) -> int:
        return sum(self.requests.values())


def make_event(event_id: str, image_url: Optional[str] = None, city: str = "Lyon") -> Event:
    return Event(
        id=event_id,
        name=f"Event {event_id}",
        date="2025-06-21",
        venue="Halle Tony Garnier",
        city=city,
        image_url=image_url,
    )


@pytest.fixture(autouse=True)
def _reset_global_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_config(tmp_path: Path) -> CacheConfig:
    return CacheConfig(image_dir=tmp_path / "imageCache", database_file=":memory:")


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def image_server() -> ImageServer:
    return ImageServer()


@pytest.fixture
async def http_client(image_server: ImageServer):
    async with httpx.AsyncClient(transport=httpx.MockTransport(image_server)) as client:
        yield client


@pytest.fixture
def file_store(http_client: httpx.AsyncClient, cache_config: CacheConfig) -> LocalFileStore:
    return LocalFileStore(client=http_client, max_image_bytes=cache_config.max_image_bytes)


@pytest.fixture
def image_cache(kv_store, file_store, cache_config, clock) -> ImageCache:
    return ImageCache(kv_store, file_store, cache_config, clock=clock)


@pytest.fixture
def record_cache(kv_store, cache_config, image_cache, clock) -> RecordCache:
    return RecordCache(kv_store, cache_config, image_cache=image_cache, clock=clock)


@pytest.fixture
def favorites(kv_store, cache_config) -> FavoritesStore:
    return FavoritesStore(kv_store, cache_config)


@pytest.fixture
def event_factory():
    return make_event
