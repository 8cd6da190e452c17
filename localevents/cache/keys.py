"""Cache key derivation for record pages and images."""

import hashlib
import json
from collections.abc import Mapping
from typing import Any, Union
from urllib.parse import urlsplit

from pydantic import ValidationError

from ..config.settings import CacheConfig
from .exceptions import CacheValidationError
from .models import SearchParams

RECORD_KEY_PREFIX = "events_"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
DEFAULT_IMAGE_EXTENSION = ".jpg"

ParamsLike = Union[SearchParams, Mapping[str, Any]]


def coerce_params(params: ParamsLike) -> SearchParams:
    """Accept either a SearchParams model or a plain mapping."""
    if isinstance(params, SearchParams):
        return params
    try:
        return SearchParams.model_validate(dict(params))
    except ValidationError as e:
        raise CacheValidationError(f"Invalid search parameters: {e}") from e


def _normalized(params: SearchParams) -> dict[str, Any]:
    return {
        "city": (params.city or "").strip().lower() or "default",
        "keyword": (params.keyword or "").strip().lower(),
        "page": params.page,
        "size": params.size,
        "start": params.start_date_time or "",
        "end": params.end_date_time or "",
    }


def derive_key(params: ParamsLike) -> str:
    """Deterministic key for one page of results.

    City and keyword compare case-insensitively; a missing city maps to
    ``"default"``. The mapping order of ``params`` does not matter.
    """
    canonical = json.dumps(_normalized(coerce_params(params)), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
    return f"{RECORD_KEY_PREFIX}{digest}"


def select_ttl(params: ParamsLike, config: CacheConfig) -> int:
    """Keyword searches go stale faster than plain browse pages."""
    if coerce_params(params).has_keyword:
        return config.search_ttl_ms
    return config.default_ttl_ms


def derive_image_key(url: str) -> str:
    """Filesystem-safe key for an image URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


def image_extension(url: str) -> str:
    path = urlsplit(url).path.lower()
    for ext in IMAGE_EXTENSIONS:
        if path.endswith(ext):
            return ext
    return DEFAULT_IMAGE_EXTENSION
