"""Settings management using Pydantic for type validation and configuration."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
MIB = 1024 * 1024


class CacheConfig(BaseModel):
    """Limits, TTLs and locations for both cache tiers."""

    namespace: str = Field(default="@LocalEvents", description="Key prefix for persisted entries")
    database_file: str = Field(
        default=":memory:", description="SQLite key-value database path (':memory:' for RAM)"
    )
    image_dir: Path = Field(
        default=Path.home() / ".cache" / "localevents" / "imageCache",
        description="Directory holding cached image files",
    )

    # Record tier
    default_ttl_ms: int = Field(default=24 * HOUR_MS, gt=0, description="TTL for browse results")
    search_ttl_ms: int = Field(default=HOUR_MS, gt=0, description="TTL for keyword searches")
    max_record_entries: int = Field(default=10, ge=1, description="Max cached result pages (FIFO)")
    record_schema_version: str = Field(default="1.0.0", description="Record entry format version")

    # Image tier
    image_ttl_ms: int = Field(default=7 * DAY_MS, gt=0, description="TTL for unpinned images")
    max_cache_size_bytes: int = Field(default=50 * MIB, gt=0, description="Image tier size cap")
    max_images: int = Field(default=200, ge=1, description="Image tier count cap")
    eviction_target_ratio: float = Field(
        default=0.8, gt=0, le=1, description="Size eviction stops at cap * ratio"
    )
    image_schema_version: str = Field(default="1.0.0", description="Image index format version")
    max_image_bytes: int = Field(default=5_000_000, gt=0, description="Largest accepted image")
    download_timeout_seconds: float = Field(default=10.0, gt=0, description="Connect/write timeout")

    # Coordinator
    sweep_interval_ms: int = Field(default=6 * HOUR_MS, gt=0, description="Periodic cleanup cadence")

    @property
    def eviction_target_bytes(self) -> int:
        return int(self.max_cache_size_bytes * self.eviction_target_ratio)

    def storage_key(self, name: str) -> str:
        """Namespaced key for the key-value store."""
        return f"{self.namespace}:{name}"


class LoggingSettings(BaseModel):
    """Console logging configuration."""

    console_level: str = Field(
        default="INFO", description="Console log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    debug: bool = Field(default=False, description="Enable debug logging for localevents modules")


class LocalEventsSettings(BaseSettings):
    """Application settings with environment variable support.

    Nested values can be set from the environment with a double underscore,
    e.g. ``LOCALEVENTS_CACHE__MAX_IMAGES=50``.
    """

    app_name: str = Field(default="LocalEvents", description="Application name")
    config_dir: Path = Field(
        default=Path.home() / ".config" / "localevents", description="Configuration directory"
    )
    data_dir: Path = Field(
        default=Path.home() / ".local" / "share" / "localevents", description="Data directory"
    )
    cache_dir: Path = Field(
        default=Path.home() / ".cache" / "localevents", description="Cache directory"
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOCALEVENTS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cache_config(self) -> CacheConfig:
        """Cache config with unset storage locations placed under data/cache dirs."""
        update: dict[str, Any] = {}
        if "database_file" not in self.cache.model_fields_set:
            update["database_file"] = str(self.database_file)
        if "image_dir" not in self.cache.model_fields_set:
            update["image_dir"] = self.cache_dir / "imageCache"
        return self.cache.model_copy(update=update)

    @property
    def database_file(self) -> Path:
        """Path to SQLite key-value database."""
        return self.data_dir / "localevents_cache.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML configuration file."""
        return self.config_dir / "config.yaml"


def _load_yaml_config(config_file: Path) -> dict[str, Any]:
    """Read a YAML mapping, returning {} when missing or unreadable."""
    if not config_file.exists():
        return {}

    try:
        with config_file.open(encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        # Don't fail if YAML loading fails, just continue with defaults/env vars
        logger.warning("Could not load YAML config from %s: %s", config_file, e)
        return {}

    if not isinstance(config_data, dict):
        if config_data is not None:
            logger.warning("Ignoring YAML config %s: top level is not a mapping", config_file)
        return {}
    return config_data


def load_settings(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> LocalEventsSettings:
    """Build settings from YAML, environment and explicit overrides.

    Precedence (highest first): keyword overrides, environment variables,
    the YAML file, field defaults.

    Args:
        config_file: YAML file to read; defaults to ``<config_dir>/config.yaml``
        **overrides: Explicit field values
    """
    path = Path(config_file) if config_file else LocalEventsSettings().config_file
    yaml_data = _load_yaml_config(path)

    if yaml_data:
        logger.debug("Loaded configuration from %s", path)

    # Environment wins over YAML: drop YAML values whose top-level field is set in env.
    env_settings = LocalEventsSettings()
    env_fields = env_settings.model_fields_set
    merged: dict[str, Any] = {}
    for key, value in yaml_data.items():
        if key not in LocalEventsSettings.model_fields:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        if key in env_fields and isinstance(value, dict):
            env_value = getattr(env_settings, key)
            value = {**value, **env_value.model_dump(exclude_unset=True)}
        elif key in env_fields:
            continue
        merged[key] = value
    merged.update(overrides)

    return LocalEventsSettings(**merged)


# Global settings management
_settings_instance: Optional[LocalEventsSettings] = None


def get_settings() -> LocalEventsSettings:
    """Get the global settings instance, creating it lazily if needed."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = load_settings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
