"""Tests for cache key derivation."""

import pytest

from localevents.cache.exceptions import CacheValidationError
from localevents.cache.keys import (
    derive_image_key,
    derive_key,
    image_extension,
    select_ttl,
)
from localevents.cache.models import SearchParams
from localevents.config.settings import CacheConfig

pytestmark = pytest.mark.unit


def test_derive_key_ignores_city_case():
    assert derive_key({"city": "Paris", "page": 0}) == derive_key({"city": "paris", "page": 0})


def test_derive_key_empty_params_match_browse_defaults():
    """Omitted fields take the browse defaults (Paris, page 0, size 20)."""
    assert derive_key({}) == derive_key({"city": "Paris", "keyword": None, "page": 0, "size": 20})


def test_derive_key_ignores_mapping_order():
    first = {"city": "Lyon", "keyword": "jazz", "page": 2}
    second = {"page": 2, "keyword": "jazz", "city": "Lyon"}
    assert derive_key(first) == derive_key(second)


def test_derive_key_accepts_model_and_mapping():
    params = SearchParams(city="Lyon", keyword="Rock", page=1, size=10)
    assert derive_key(params) == derive_key({"city": "lyon", "keyword": "rock", "page": 1, "pageSize": 10})


def test_derive_key_missing_city_maps_to_default():
    assert derive_key({"city": None}) == derive_key({"city": ""})
    assert derive_key({"city": None}) != derive_key({"city": "Paris"})


def test_derive_key_distinguishes_queries():
    keys = {
        derive_key({"city": "Lyon"}),
        derive_key({"city": "Lyon", "page": 1}),
        derive_key({"city": "Lyon", "size": 50}),
        derive_key({"city": "Lyon", "keyword": "jazz"}),
        derive_key({"city": "Lyon", "startDateTime": "2025-06-01T00:00:00Z"}),
        derive_key({"city": "Marseille"}),
    }
    assert len(keys) == 6


def test_derive_key_format():
    key = derive_key({"city": "Lyon"})
    assert key.startswith("events_")
    assert len(key) == len("events_") + 16


def test_derive_key_rejects_invalid_params():
    with pytest.raises(CacheValidationError):
        derive_key({"page": -1})


def test_select_ttl_uses_search_ttl_for_keywords():
    config = CacheConfig()
    assert select_ttl({"city": "Lyon", "keyword": "jazz"}, config) == config.search_ttl_ms
    assert select_ttl({"city": "Lyon"}, config) == config.default_ttl_ms
    assert select_ttl({"city": "Lyon", "keyword": "   "}, config) == config.default_ttl_ms


def test_derive_image_key_is_stable_and_filename_safe():
    url = "https://img.example.com/events/42.jpg?w=640"
    key = derive_image_key(url)
    assert key == derive_image_key(url)
    assert key != derive_image_key("https://img.example.com/events/43.jpg?w=640")
    assert key.isalnum()
    assert len(key) == 16


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://img.example.com/a.png", ".png"),
        ("https://img.example.com/a.JPEG?x=1", ".jpeg"),
        ("https://img.example.com/a.webp", ".webp"),
        ("https://img.example.com/a", ".jpg"),
        ("https://img.example.com/a.php?img=b.png", ".jpg"),
    ],
)
def test_image_extension(url, expected):
    assert image_extension(url) == expected
