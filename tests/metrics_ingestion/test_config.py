"""
Configuration Tests.

============================================================
PURPOSE
============================================================
Presets, environment loading and validation.

TEST CATEGORIES:
- YouTube preset
- Environment mapping
- Validation errors

============================================================
"""

import dataclasses

import pytest

from metrics_ingestion.config import (
    load_config_from_env,
    require_valid,
    validate_config,
    youtube_playlist_config,
)
from metrics_ingestion.exceptions import ConfigurationError
from metrics_ingestion.types import FieldSpec, HttpMethod, IdentifierOrder

from tests.metrics_ingestion.fakes import make_config


BASE_ENV = {
    "METRICS_LISTING_URL": "https://api.example.test/v1/items",
    "METRICS_ITEMS_PATH": "items.#.id",
    "METRICS_DETAIL_URL": "https://api.example.test/v1/details",
    "METRICS_FIELDS": "views=stats.viewCount,likes",
}


# ============================================================
# PRESET TESTS
# ============================================================

class TestYoutubePreset:
    """Tests for the YouTube playlist preset."""

    def test_defaults(self):
        """Test the preset matches the Data API layout."""
        config = youtube_playlist_config("PL123", api_key="k")

        assert config.name == "youtube"
        assert config.tag_key == "videoId"
        assert config.api_key_param == "key"
        assert config.listing.collection_param == "playlistId"
        assert config.listing.collection_id == "PL123"
        assert config.listing.page_size == 5
        assert config.listing.items_path == "items.#.snippet.resourceId.videoId"
        assert config.listing.token_path == "nextPageToken"
        assert ("part", "snippet") in config.listing.params
        assert ("part", "statistics,snippet") in config.detail.params
        assert [f.name for f in config.fields] == [
            "viewCount", "likeCount", "dislikeCount", "favoriteCount", "commentCount",
        ]
        assert config.fields[0].path == "items.#.statistics.viewCount"
        assert validate_config(config) == []

    def test_overrides(self):
        """Test any config field can be overridden."""
        config = youtube_playlist_config("PL123", api_key="k", page_size=50, max_concurrency=8)

        assert config.listing.page_size == 50
        assert config.max_concurrency == 8


# ============================================================
# ENVIRONMENT TESTS
# ============================================================

class TestLoadFromEnv:
    """Tests for METRICS_* environment loading."""

    def test_minimal_env(self):
        """Test the required variables alone produce a valid config."""
        config = load_config_from_env(env=BASE_ENV)

        assert config.listing.url == BASE_ENV["METRICS_LISTING_URL"]
        assert config.detail.url == BASE_ENV["METRICS_DETAIL_URL"]
        assert config.fields == (
            FieldSpec(name="views", path="stats.viewCount"),
            FieldSpec(name="likes", path="likes"),
        )
        assert config.max_concurrency == 1
        assert config.listing.identifier_order == IdentifierOrder.PAGE_SEQUENCE

    def test_full_env(self):
        """Test every optional variable is mapped."""
        env = dict(BASE_ENV, **{
            "METRICS_NAME": "videos",
            "METRICS_ENABLED": "false",
            "METRICS_LISTING_METHOD": "post",
            "METRICS_LISTING_PARAMS": "part=snippet&x=1",
            "METRICS_TOKEN_PARAM": "cursor",
            "METRICS_TOKEN_PATH": "meta.next",
            "METRICS_COLLECTION_PARAM": "playlistId",
            "METRICS_COLLECTION_ID": "PL9",
            "METRICS_PAGE_SIZE_PARAM": "limit",
            "METRICS_PAGE_SIZE": "25",
            "METRICS_MAX_PAGES": "10",
            "METRICS_IDENTIFIER_ORDER": "last_page_first",
            "METRICS_DETAIL_METHOD": "GET",
            "METRICS_DETAIL_PARAMS": "part=statistics",
            "METRICS_DETAIL_ID_PARAM": "videoId",
            "METRICS_API_KEY": "s3cret",
            "METRICS_API_KEY_PARAM": "apikey",
            "METRICS_HEADERS": "X-One=1; X-Two=two",
            "METRICS_TAG_KEY": "video",
            "METRICS_TIMEOUT_SECONDS": "2.5",
            "METRICS_CYCLE_TIMEOUT_SECONDS": "60",
            "METRICS_MAX_CONCURRENCY": "4",
            "METRICS_FAIL_FAST": "yes",
            "METRICS_INTERVAL_SECONDS": "300",
        })

        config = load_config_from_env(env=env)

        assert config.name == "videos"
        assert not config.enabled
        assert config.listing.method == HttpMethod.POST
        assert config.listing.params == (("part", "snippet"), ("x", "1"))
        assert config.listing.token_param == "cursor"
        assert config.listing.token_path == "meta.next"
        assert config.listing.collection_id == "PL9"
        assert config.listing.page_size_param == "limit"
        assert config.listing.page_size == 25
        assert config.listing.max_pages == 10
        assert config.listing.identifier_order == IdentifierOrder.LAST_PAGE_FIRST
        assert config.detail.params == (("part", "statistics"),)
        assert config.detail.id_param == "videoId"
        assert config.api_key == "s3cret"
        assert config.api_key_param == "apikey"
        assert config.headers == (("X-One", "1"), ("X-Two", "two"))
        assert config.tag_key == "video"
        assert config.timeout_seconds == 2.5
        assert config.cycle_timeout_seconds == 60.0
        assert config.max_concurrency == 4
        assert config.fail_fast
        assert config.interval_seconds == 300

    def test_youtube_preset_from_env(self):
        """Test METRICS_PRESET starts from the preset."""
        env = {
            "METRICS_PRESET": "youtube",
            "METRICS_PLAYLIST_ID": "PLabc",
            "METRICS_API_KEY": "k",
            "METRICS_MAX_CONCURRENCY": "3",
        }

        config = load_config_from_env(env=env)

        assert config.name == "youtube"
        assert config.listing.collection_id == "PLabc"
        assert config.api_key == "k"
        assert config.max_concurrency == 3

    def test_preset_requires_playlist(self):
        """Test the preset without a playlist id is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env(env={"METRICS_PRESET": "youtube"})

        assert exc_info.value.config_key == "METRICS_PLAYLIST_ID"

    @pytest.mark.parametrize("missing", [
        "METRICS_LISTING_URL",
        "METRICS_ITEMS_PATH",
        "METRICS_DETAIL_URL",
    ])
    def test_required_variables(self, missing):
        """Test each required variable is reported by name."""
        env = {k: v for k, v in BASE_ENV.items() if k != missing}

        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env(env=env)

        assert exc_info.value.config_key == missing

    def test_blank_value_counts_as_missing(self):
        """Test whitespace-only values are ignored."""
        env = dict(BASE_ENV, METRICS_LISTING_URL="   ")

        with pytest.raises(ConfigurationError):
            load_config_from_env(env=env)

    def test_missing_fields(self):
        """Test a config without fields fails validation."""
        env = {k: v for k, v in BASE_ENV.items() if k != "METRICS_FIELDS"}

        with pytest.raises(ConfigurationError, match="at least one field"):
            load_config_from_env(env=env)

    @pytest.mark.parametrize("key, value, expected", [
        ("METRICS_MAX_PAGES", "many", "an integer"),
        ("METRICS_TIMEOUT_SECONDS", "soon", "a number"),
        ("METRICS_FAIL_FAST", "maybe", "a boolean"),
        ("METRICS_LISTING_METHOD", "PUT", "GET or POST"),
        ("METRICS_IDENTIFIER_ORDER", "random", "page_sequence or last_page_first"),
        ("METRICS_HEADERS", "no-equals-sign", "Name=value"),
        ("METRICS_FIELDS", "=path", "name=path"),
    ])
    def test_invalid_values(self, key, value, expected):
        """Test malformed values name the variable and the expectation."""
        env = dict(BASE_ENV, **{key: value})

        with pytest.raises(ConfigurationError, match=expected) as exc_info:
            load_config_from_env(env=env)

        assert exc_info.value.config_key == key

    def test_dotenv_file(self, tmp_path, monkeypatch):
        """Test variables are read from a .env file."""
        # setenv first so teardown removes what load_dotenv writes
        for key in BASE_ENV:
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)
        env_file = tmp_path / "metrics.env"
        env_file.write_text("\n".join(f"{k}={v}" for k, v in BASE_ENV.items()))

        config = load_config_from_env(dotenv_path=env_file)

        assert config.listing.url == BASE_ENV["METRICS_LISTING_URL"]
        assert config.fields[0] == FieldSpec(name="views", path="stats.viewCount")


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidation:
    """Tests for validate_config and require_valid."""

    def test_valid(self):
        """Test the default test config is valid."""
        config = make_config()

        assert validate_config(config) == []
        assert require_valid(config) is config

    def test_collects_every_error(self):
        """Test all problems are reported at once."""
        config = make_config(
            fields=(),
            timeout_seconds=0,
            max_concurrency=0,
            listing=dict(max_pages=0, page_size=0),
        )

        errors = validate_config(config)

        assert "at least one field is required" in errors
        assert "timeout_seconds must be positive" in errors
        assert "max_concurrency must be at least 1" in errors
        assert "max_pages must be at least 1" in errors
        assert "page_size must be at least 1" in errors

    def test_duplicate_field_names(self):
        """Test two fields may not share a name."""
        config = make_config(fields=(
            FieldSpec(name="views", path="a"),
            FieldSpec(name="views", path="b"),
        ))

        assert validate_config(config) == ["duplicate field names: views"]

    def test_invalid_path(self):
        """Test empty path segments are rejected."""
        config = make_config(fields=(FieldSpec(name="views", path="stats..viewCount"),))

        errors = validate_config(config)

        assert len(errors) == 1
        assert errors[0].startswith("field views:")

    def test_require_valid_raises(self):
        """Test require_valid lists every error in the exception."""
        config = dataclasses.replace(make_config(), name="", max_concurrency=0)

        with pytest.raises(ConfigurationError) as exc_info:
            require_valid(config)

        assert len(exc_info.value.context["errors"]) == 2
        assert "name must not be empty" in exc_info.value.message
