"""
Metrics Ingestion - Configuration.

============================================================
SOURCES
============================================================
- Presets (``youtube_playlist_config``)
- Environment variables, optionally from a ``.env`` file

All configuration is loaded once before the first cycle and
is immutable afterwards.

============================================================
ENVIRONMENT
============================================================
METRICS_PRESET            "youtube" to start from the YouTube preset
METRICS_PLAYLIST_ID       playlist for the YouTube preset
METRICS_NAME              measurement name
METRICS_ENABLED           true/false
METRICS_LISTING_URL       listing endpoint
METRICS_LISTING_METHOD    GET or POST
METRICS_LISTING_PARAMS    static params, "a=1&b=2"
METRICS_ITEMS_PATH        path of the identifier list in a page
METRICS_TOKEN_PARAM       request parameter carrying the token
METRICS_TOKEN_PATH        path of the token in a page
METRICS_COLLECTION_PARAM  / METRICS_COLLECTION_ID
METRICS_PAGE_SIZE_PARAM   / METRICS_PAGE_SIZE
METRICS_MAX_PAGES         pagination guard
METRICS_IDENTIFIER_ORDER  page_sequence or last_page_first
METRICS_DETAIL_URL        detail endpoint, may contain {item_id}
METRICS_DETAIL_METHOD     GET or POST
METRICS_DETAIL_PARAMS     static params, "a=1&b=2"
METRICS_DETAIL_ID_PARAM   parameter name for the item id
METRICS_FIELDS            "name=path,name2=path2" (bare name = path)
METRICS_API_KEY           / METRICS_API_KEY_PARAM
METRICS_HEADERS           "Name=value;Other=value"
METRICS_TAG_KEY           tag name for the item identifier
METRICS_TIMEOUT_SECONDS   per request
METRICS_CYCLE_TIMEOUT_SECONDS
METRICS_MAX_CONCURRENCY   detail fetches in flight
METRICS_FAIL_FAST         true/false
METRICS_INTERVAL_SECONDS  runner interval

============================================================
"""

import dataclasses
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl

from dotenv import load_dotenv

from metrics_ingestion.exceptions import ConfigurationError
from metrics_ingestion.paths import split_path
from metrics_ingestion.types import (
    CollectorConfig,
    DetailConfig,
    FieldSpec,
    HttpMethod,
    IdentifierOrder,
    ListingConfig,
)


ENV_PREFIX = "METRICS_"


# =============================================================
# YOUTUBE PRESET
# =============================================================

YOUTUBE_PLAYLIST_ITEMS_URL = "https://www.googleapis.com/youtube/v3/playlistItems"
YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"

YOUTUBE_STATISTICS = (
    "viewCount",
    "likeCount",
    "dislikeCount",
    "favoriteCount",
    "commentCount",
)


def youtube_playlist_config(
    playlist_id: str,
    api_key: str,
    page_size: int = 5,
    **overrides,
) -> CollectorConfig:
    """
    Collector for per-video statistics of a YouTube playlist.

    Args:
        playlist_id: Playlist to walk
        api_key: Data API key
        page_size: ``maxResults`` per listing page
        **overrides: Any CollectorConfig field

    Returns:
        CollectorConfig
    """
    config = CollectorConfig(
        name="youtube",
        listing=ListingConfig(
            url=YOUTUBE_PLAYLIST_ITEMS_URL,
            params=(("part", "snippet"),),
            collection_param="playlistId",
            collection_id=playlist_id,
            page_size_param="maxResults",
            page_size=page_size,
            token_param="pageToken",
            token_path="nextPageToken",
            items_path="items.#.snippet.resourceId.videoId",
        ),
        detail=DetailConfig(
            url=YOUTUBE_VIDEOS_URL,
            params=(("part", "statistics,snippet"),),
            id_param="id",
        ),
        fields=tuple(
            FieldSpec(name=stat, path=f"items.#.statistics.{stat}")
            for stat in YOUTUBE_STATISTICS
        ),
        api_key=api_key,
        api_key_param="key",
        tag_key="videoId",
        timeout_seconds=5.0,
        interval_seconds=900,
    )
    return dataclasses.replace(config, **overrides) if overrides else config


# =============================================================
# VALIDATION
# =============================================================

def validate_config(config: CollectorConfig) -> List[str]:
    """Validate configuration, return list of errors."""
    errors = []

    if not config.name:
        errors.append("name must not be empty")
    if not config.listing.url:
        errors.append("listing url is required")
    if not config.detail.url:
        errors.append("detail url is required")
    if not config.fields:
        errors.append("at least one field is required")
    if config.listing.max_pages < 1:
        errors.append("max_pages must be at least 1")
    if config.listing.page_size is not None and config.listing.page_size < 1:
        errors.append("page_size must be at least 1")
    if config.timeout_seconds <= 0:
        errors.append("timeout_seconds must be positive")
    if config.cycle_timeout_seconds is not None and config.cycle_timeout_seconds <= 0:
        errors.append("cycle_timeout_seconds must be positive")
    if config.max_concurrency < 1:
        errors.append("max_concurrency must be at least 1")
    if config.interval_seconds < 1:
        errors.append("interval_seconds must be at least 1")

    names = [spec.name for spec in config.fields]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        errors.append(f"duplicate field names: {', '.join(duplicates)}")

    paths = [
        ("items_path", config.listing.items_path),
        ("token_path", config.listing.token_path),
    ] + [(f"field {spec.name}", spec.path) for spec in config.fields]
    for label, path in paths:
        try:
            split_path(path)
        except ValueError as e:
            errors.append(f"{label}: {e}")

    return errors


def require_valid(config: CollectorConfig) -> CollectorConfig:
    """
    Return the config unchanged if valid.

    Raises:
        ConfigurationError: Listing every problem found
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError(
            message="; ".join(errors),
            source_name=config.name,
            context={"errors": errors},
        )
    return config


# =============================================================
# ENVIRONMENT LOADING
# =============================================================

def load_config_from_env(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Union[str, Path]] = None,
) -> CollectorConfig:
    """
    Load collector configuration from the environment.

    Args:
        env: Mapping to read instead of os.environ (no .env loading)
        dotenv_path: Explicit .env file; default is the usual lookup

    Returns:
        Validated CollectorConfig

    Raises:
        ConfigurationError: On missing or invalid values
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    reader = _EnvReader(env)

    if reader.get("PRESET", "").lower() == "youtube":
        base = youtube_playlist_config(
            playlist_id=reader.require("PLAYLIST_ID"),
            api_key=reader.get("API_KEY", ""),
        )
    else:
        base = CollectorConfig(
            listing=ListingConfig(
                url=reader.require("LISTING_URL"),
                items_path=reader.require("ITEMS_PATH"),
            ),
            detail=DetailConfig(url=reader.require("DETAIL_URL")),
            fields=reader.fields("FIELDS") or (),
        )

    listing = dataclasses.replace(
        base.listing,
        url=reader.get("LISTING_URL", base.listing.url),
        method=reader.method("LISTING_METHOD", base.listing.method),
        params=reader.params("LISTING_PARAMS", base.listing.params),
        items_path=reader.get("ITEMS_PATH", base.listing.items_path),
        token_param=reader.get("TOKEN_PARAM", base.listing.token_param),
        token_path=reader.get("TOKEN_PATH", base.listing.token_path),
        collection_param=reader.get("COLLECTION_PARAM", base.listing.collection_param),
        collection_id=reader.get("COLLECTION_ID", base.listing.collection_id),
        page_size_param=reader.get("PAGE_SIZE_PARAM", base.listing.page_size_param),
        page_size=reader.integer("PAGE_SIZE", base.listing.page_size),
        max_pages=reader.integer("MAX_PAGES", base.listing.max_pages),
        identifier_order=reader.order("IDENTIFIER_ORDER", base.listing.identifier_order),
    )
    detail = dataclasses.replace(
        base.detail,
        url=reader.get("DETAIL_URL", base.detail.url),
        method=reader.method("DETAIL_METHOD", base.detail.method),
        params=reader.params("DETAIL_PARAMS", base.detail.params),
        id_param=reader.get("DETAIL_ID_PARAM", base.detail.id_param),
    )

    config = dataclasses.replace(
        base,
        listing=listing,
        detail=detail,
        fields=reader.fields("FIELDS") or base.fields,
        name=reader.get("NAME", base.name),
        enabled=reader.boolean("ENABLED", base.enabled),
        api_key=reader.get("API_KEY", base.api_key),
        api_key_param=reader.get("API_KEY_PARAM", base.api_key_param),
        headers=reader.headers("HEADERS", base.headers),
        tag_key=reader.get("TAG_KEY", base.tag_key),
        timeout_seconds=reader.number("TIMEOUT_SECONDS", base.timeout_seconds),
        cycle_timeout_seconds=reader.number("CYCLE_TIMEOUT_SECONDS", base.cycle_timeout_seconds),
        max_concurrency=reader.integer("MAX_CONCURRENCY", base.max_concurrency),
        fail_fast=reader.boolean("FAIL_FAST", base.fail_fast),
        interval_seconds=reader.integer("INTERVAL_SECONDS", base.interval_seconds),
    )
    return require_valid(config)


class _EnvReader:
    """Typed access to METRICS_* variables."""

    def __init__(self, env: Mapping[str, str]) -> None:
        self._env = env

    def _raw(self, key: str) -> Optional[str]:
        value = self._env.get(ENV_PREFIX + key)
        if value is None or value.strip() == "":
            return None
        return value.strip()

    def _invalid(self, key: str, value: str, expected: str) -> ConfigurationError:
        return ConfigurationError(
            message=f"{ENV_PREFIX}{key}={value!r} is not {expected}",
            config_key=ENV_PREFIX + key,
        )

    def get(self, key: str, default=None):
        value = self._raw(key)
        return default if value is None else value

    def require(self, key: str) -> str:
        value = self._raw(key)
        if value is None:
            raise ConfigurationError(
                message=f"{ENV_PREFIX}{key} is required",
                config_key=ENV_PREFIX + key,
            )
        return value

    def integer(self, key: str, default: Optional[int]) -> Optional[int]:
        value = self._raw(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise self._invalid(key, value, "an integer")

    def number(self, key: str, default: Optional[float]) -> Optional[float]:
        value = self._raw(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise self._invalid(key, value, "a number")

    def boolean(self, key: str, default: bool) -> bool:
        value = self._raw(key)
        if value is None:
            return default
        if value.lower() in ("1", "true", "yes", "on"):
            return True
        if value.lower() in ("0", "false", "no", "off"):
            return False
        raise self._invalid(key, value, "a boolean")

    def method(self, key: str, default: HttpMethod) -> HttpMethod:
        value = self._raw(key)
        if value is None:
            return default
        try:
            return HttpMethod(value.upper())
        except ValueError:
            raise self._invalid(key, value, "GET or POST")

    def order(self, key: str, default: IdentifierOrder) -> IdentifierOrder:
        value = self._raw(key)
        if value is None:
            return default
        try:
            return IdentifierOrder(value.lower())
        except ValueError:
            raise self._invalid(key, value, "page_sequence or last_page_first")

    def params(
        self,
        key: str,
        default: Tuple[Tuple[str, str], ...],
    ) -> Tuple[Tuple[str, str], ...]:
        value = self._raw(key)
        if value is None:
            return default
        return tuple(parse_qsl(value, keep_blank_values=True))

    def headers(
        self,
        key: str,
        default: Tuple[Tuple[str, str], ...],
    ) -> Tuple[Tuple[str, str], ...]:
        value = self._raw(key)
        if value is None:
            return default
        headers: Dict[str, str] = {}
        for entry in value.split(";"):
            if not entry.strip():
                continue
            name, sep, header_value = entry.partition("=")
            if not sep or not name.strip():
                raise self._invalid(key, value, "a list of Name=value headers")
            headers[name.strip()] = header_value.strip()
        return tuple(headers.items())

    def fields(self, key: str) -> Tuple[FieldSpec, ...]:
        value = self._raw(key)
        if value is None:
            return ()
        try:
            return tuple(
                FieldSpec.parse(entry)
                for entry in value.split(",")
                if entry.strip()
            )
        except ValueError:
            raise self._invalid(key, value, "a list of name=path fields")
