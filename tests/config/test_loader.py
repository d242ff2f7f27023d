"""Tests for load_settings() and the SettingsLoader singleton."""

from __future__ import annotations

from pathlib import Path

import pytest

from feedsync.config import Settings, SettingsLoader, load_settings
from feedsync.shared.errors import ApplicationError, ErrorCode


@pytest.fixture
def config_file(isolated_config: Path) -> Path:
    path = isolated_config / "custom.toml"
    path.write_text("[cache]\nstale_time = 10\ngc_time = 20\n", encoding="utf-8")
    return path


class TestLoadSettings:
    def test_explicit_path(self, config_file: Path) -> None:
        assert load_settings(config_file).cache.stale_time == 10

    def test_defaults_without_any_file(self, isolated_config: Path) -> None:
        assert load_settings() == Settings()

    def test_default_location_is_discovered(self, isolated_config: Path) -> None:
        """Test that config/config.toml in the working directory is used."""
        default_file = isolated_config / "config" / "config.toml"
        default_file.parent.mkdir()
        default_file.write_text('[logging]\nlevel = "info"\n', encoding="utf-8")

        assert load_settings().logging.level == "INFO"

    def test_dotenv_values_apply(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a .env file in the working directory feeds the environment."""
        (isolated_config / ".env").write_text("FEEDSYNC_CACHE__RETRY=4\n", encoding="utf-8")
        # Registers the variable so the value loaded from .env is removed afterwards
        monkeypatch.setenv("FEEDSYNC_CACHE__RETRY", "0")
        monkeypatch.delenv("FEEDSYNC_CACHE__RETRY")

        assert load_settings().cache.retry == 4

    def test_environment_wins_over_dotenv(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (isolated_config / ".env").write_text("FEEDSYNC_CACHE__RETRY=4\n", encoding="utf-8")
        monkeypatch.setenv("FEEDSYNC_CACHE__RETRY", "2")

        assert load_settings().cache.retry == 2

    def test_missing_file(self, isolated_config: Path) -> None:
        with pytest.raises(ApplicationError) as exc_info:
            load_settings(isolated_config / "absent.toml")

        assert exc_info.value.code == ErrorCode.MISSING_CONFIG
        assert isinstance(exc_info.value.original_error, FileNotFoundError)

    def test_invalid_toml(self, isolated_config: Path) -> None:
        broken = isolated_config / "broken.toml"
        broken.write_text("[cache\nstale_time = ", encoding="utf-8")

        with pytest.raises(ApplicationError) as exc_info:
            load_settings(broken)

        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert "Invalid TOML" in exc_info.value.message

    def test_invalid_values(self, isolated_config: Path) -> None:
        invalid = isolated_config / "invalid.toml"
        invalid.write_text("[cache]\nstale_time = 600\ngc_time = 60\n", encoding="utf-8")

        with pytest.raises(ApplicationError) as exc_info:
            load_settings(invalid)

        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert "1 validation error(s)" in exc_info.value.message


class TestSettingsLoader:
    def test_instance_is_cached_until_reset(self, isolated_config: Path) -> None:
        loader = SettingsLoader()

        first = loader.get_config()

        assert loader.get_config() is first
        loader.reset()
        assert loader.get_config() is not first

    def test_reload_picks_up_new_file(self, isolated_config: Path) -> None:
        loader = SettingsLoader()
        assert loader.get_config().cache.retry == 1

        default_file = isolated_config / "config.toml"
        default_file.write_text("[cache]\nretry = 5\n", encoding="utf-8")

        assert loader.reload_config().cache.retry == 5

    def test_update_and_save_config(self, isolated_config: Path) -> None:
        """Test that the update is validated, saved and cached."""
        loader = SettingsLoader()
        target = isolated_config / "saved.toml"

        def _update(settings: Settings) -> None:
            settings.feed.default_sort = "popular"

        loader.update_and_save_config(_update, target)

        assert loader.get_config().feed.default_sort == "popular"
        assert load_settings(target).feed.default_sort == "popular"

    def test_invalid_update_is_not_saved(self, isolated_config: Path) -> None:
        loader = SettingsLoader()
        original = loader.get_config()
        target = isolated_config / "saved.toml"

        def _update(settings: Settings) -> None:
            settings.feed.default_radius = 1234

        with pytest.raises(ApplicationError) as exc_info:
            loader.update_and_save_config(_update, target)

        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert not target.exists()
        assert loader.get_config() is original
