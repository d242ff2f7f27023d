"""Tests for the configuration models."""

from __future__ import annotations

from pathlib import Path

import pytest
import toml
from pydantic import ValidationError

from feedsync.config import CacheSettings, FeedSettings, LoggingSettings, Settings
from feedsync.shared.constants.application import Application


class TestDefaults:
    def test_sections(self, isolated_config: Path) -> None:
        """Test that every section falls back to its defaults."""
        settings = Settings()

        assert settings.app.name == Application.NAME
        assert settings.logging.level == "WARNING"
        assert settings.cache.stale_time == 300
        assert settings.cache.gc_time == 1800
        assert settings.feed.default_radius == 5000
        assert settings.feed.allowed_radii == [2000, 5000, 10000]

    def test_environment_override(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that nested values can be set with FEEDSYNC_<SECTION>__<KEY>."""
        monkeypatch.setenv("FEEDSYNC_CACHE__STALE_TIME", "60")
        monkeypatch.setenv("FEEDSYNC_FEED__DEFAULT_SORT", "popular")

        settings = Settings()

        assert settings.cache.stale_time == 60
        assert settings.feed.default_sort == "popular"


class TestValidators:
    def test_gc_time_must_cover_stale_time(self) -> None:
        with pytest.raises(ValidationError, match="gc_time"):
            CacheSettings(stale_time=120, gc_time=60)

    def test_negative_retry_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheSettings(retry=-1)

    @pytest.mark.parametrize(
        "fields",
        [
            {"default_sort": "hot"},
            {"default_time_filter": "year"},
            {"default_radius": 3000},
            {"allowed_radii": [1000], "default_radius": 5000},
        ],
    )
    def test_feed_choices(self, fields: dict) -> None:
        with pytest.raises(ValidationError):
            FeedSettings(**fields)

    def test_custom_radius_list(self) -> None:
        settings = FeedSettings(allowed_radii=[1000, 3000], default_radius=3000)

        assert settings.default_radius == 3000

    def test_log_level_is_normalized(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError):
            LoggingSettings(level="verbose")


class TestTomlFiles:
    def test_from_toml_file(self, isolated_config: Path) -> None:
        """Test that sections missing from the file keep their defaults."""
        config_file = isolated_config / "feedsync.toml"
        config_file.write_text(
            '[cache]\nstale_time = 30\ngc_time = 90\n\n[feed]\ndefault_time_filter = "day"\n',
            encoding="utf-8",
        )

        settings = Settings.from_toml_file(config_file)

        assert settings.cache.stale_time == 30
        assert settings.cache.gc_time == 90
        assert settings.feed.default_time_filter == "day"
        assert settings.feed.default_sort == "new"

    def test_missing_file(self, isolated_config: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_toml_file(isolated_config / "absent.toml")

    def test_to_toml_file_round_trip(self, isolated_config: Path) -> None:
        """Test that a saved file loads back into equal settings."""
        settings = Settings()
        settings.cache.retry = 3
        target = isolated_config / "nested" / "config.toml"

        settings.to_toml_file(target)

        assert toml.load(target)["cache"]["retry"] == 3
        assert "file" not in toml.load(target)["logging"]
        assert Settings.from_toml_file(target) == settings
