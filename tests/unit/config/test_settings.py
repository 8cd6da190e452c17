"""Tests for settings loading from YAML and environment."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from localevents.config.settings import (
    CacheConfig,
    LocalEventsSettings,
    get_settings,
    load_settings,
    reset_settings,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("LOCALEVENTS_CACHE__MAX_IMAGES", "LOCALEVENTS_DATA_DIR", "LOCALEVENTS_LOGGING__DEBUG"):
        monkeypatch.delenv(key, raising=False)


def test_cache_config_defaults():
    config = CacheConfig()

    assert config.default_ttl_ms == 24 * 60 * 60 * 1000
    assert config.search_ttl_ms == 60 * 60 * 1000
    assert config.max_record_entries == 10
    assert config.image_ttl_ms == 7 * 24 * 60 * 60 * 1000
    assert config.max_cache_size_bytes == 50 * 1024 * 1024
    assert config.max_images == 200
    assert config.eviction_target_bytes == int(50 * 1024 * 1024 * 0.8)
    assert config.sweep_interval_ms == 6 * 60 * 60 * 1000
    assert config.storage_key("favorites") == "@LocalEvents:favorites"


def test_cache_config_rejects_invalid_ratio():
    with pytest.raises(ValidationError):
        CacheConfig(eviction_target_ratio=1.5)


def test_load_settings_reads_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("cache:\n  max_images: 50\nlogging:\n  debug: true\n")

    settings = load_settings(config_file)

    assert settings.cache.max_images == 50
    assert settings.logging.debug is True


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("cache:\n  max_images: 50\n  max_record_entries: 4\n")
    monkeypatch.setenv("LOCALEVENTS_CACHE__MAX_IMAGES", "75")

    settings = load_settings(config_file)

    assert settings.cache.max_images == 75
    assert settings.cache.max_record_entries == 4


def test_load_settings_ignores_broken_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("cache: [unclosed\n")

    settings = load_settings(config_file)

    assert settings.cache.max_images == 200


def test_load_settings_missing_file_uses_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.yaml")

    assert isinstance(settings, LocalEventsSettings)
    assert settings.cache.max_record_entries == 10


def test_cache_config_places_storage_under_settings_dirs(tmp_path):
    settings = load_settings(tmp_path / "absent.yaml", data_dir=tmp_path / "data", cache_dir=tmp_path / "cache")

    cache_config = settings.cache_config

    assert cache_config.database_file == str(tmp_path / "data" / "localevents_cache.db")
    assert Path(cache_config.image_dir) == tmp_path / "cache" / "imageCache"


def test_cache_config_keeps_explicit_locations(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"cache:\n  database_file: ':memory:'\n  image_dir: {tmp_path / 'imgs'}\n")

    cache_config = load_settings(config_file).cache_config

    assert cache_config.database_file == ":memory:"
    assert Path(cache_config.image_dir) == tmp_path / "imgs"


def test_get_settings_is_cached_until_reset():
    first = get_settings()

    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
