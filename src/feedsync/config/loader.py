"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
- Configuration update and save operations
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

import toml
from dotenv import load_dotenv
from pydantic import ValidationError

from feedsync.config.models.settings import Settings
from feedsync.shared.constants.application import ConfigPaths
from feedsync.shared.constants.logging import LogOperationNames
from feedsync.shared.errors import (
    ApplicationError,
    ErrorCode,
    ErrorContext,
    create_config_error,
)

logger = logging.getLogger(__name__)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking pattern to ensure thread-safety
    while minimizing lock overhead.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance (thread-safe).

        Returns:
            The global Settings instance, loading it if necessary.
        """
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self) -> Settings:
        """Reload the global settings instance from configuration files.

        Returns:
            The reloaded Settings instance.
        """
        with self._lock:
            self._instance = load_settings()

        return self._instance

    def reset(self) -> None:
        """Drop the cached instance so the next access reloads."""
        with self._lock:
            self._instance = None

    def update_and_save_config(
        self,
        updater: Callable[[Settings], None],
        config_path: Path | str = Path(ConfigPaths.DEFAULT_CONFIG_FILE),
    ) -> None:
        """Update configuration, validate, save to file, and reload global cache.

        Args:
            updater: Callable that modifies Settings object in-place
            config_path: Path to save the configuration file

        Raises:
            ApplicationError: If validation fails or save operation fails
        """
        config_path = Path(config_path)

        with self._lock:
            try:
                current = self.get_config()
                updated = current.model_copy(deep=True)
                updater(updated)
                updated = Settings.model_validate(updated.model_dump())
                updated.to_toml_file(config_path)
                self._instance = updated

                logger.info("Configuration updated and saved successfully to %s", config_path)

            except (ValidationError, OSError, ValueError, TypeError) as e:
                logger.exception("Failed to update and save configuration")
                raise ApplicationError(
                    code=ErrorCode.CONFIGURATION_ERROR,
                    message=f"Configuration update failed: {e}",
                    context=ErrorContext(
                        operation="update_and_save_config",
                        additional_data={"config_path": str(config_path)},
                    ),
                    original_error=e,
                ) from e


def _load_env_file(env_file: Path | None = None) -> None:
    """Load environment variables from a .env file when one exists.

    Values already present in the environment win over the file.
    """
    env_file = env_file or Path(ConfigPaths.ENV_FILE)
    if not env_file.exists():
        return

    load_dotenv(env_file, override=False)
    logger.debug("Loaded environment from %s", env_file)


def _default_config_paths() -> list[Path]:
    return [
        Path(ConfigPaths.DEFAULT_CONFIG_FILE),
        Path(ConfigPaths.LOCAL_CONFIG_FILE),
        Path.home() / ConfigPaths.USER_CONFIG_DIR / ConfigPaths.USER_CONFIG_FILE,
    ]


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from TOML configuration file or environment.

    Args:
        config_path: Optional path to TOML configuration file. If None, tries to load
                    from default locations or environment variables.

    Returns:
        Settings instance loaded from the specified source

    Raises:
        ApplicationError: If the configuration file is missing, unreadable or invalid
    """
    _load_env_file()

    try:
        if config_path:
            return Settings.from_toml_file(config_path)

        for candidate in _default_config_paths():
            if candidate.exists():
                return Settings.from_toml_file(candidate)

        return Settings()
    except FileNotFoundError as e:
        raise ApplicationError(
            code=ErrorCode.MISSING_CONFIG,
            message=str(e),
            context=ErrorContext(
                operation=LogOperationNames.LOAD_CONFIG,
                additional_data={"config_path": str(config_path)},
            ),
            original_error=e,
        ) from e
    except toml.TomlDecodeError as e:
        raise create_config_error(
            f"Invalid TOML in configuration file: {e}",
            config_key=str(config_path) if config_path else None,
            original_error=e,
        ) from e
    except ValidationError as e:
        raise create_config_error(
            f"Invalid configuration: {e.error_count()} validation error(s)",
            original_error=e,
        ) from e


# Global loader instance
_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe).

    Returns:
        The global Settings instance, loading it if necessary.
    """
    return _loader.get_config()


def reload_config() -> Settings:
    """Reload the global settings instance from configuration files.

    Returns:
        The reloaded Settings instance.
    """
    return _loader.reload_config()


def update_and_save_config(
    updater: Callable[[Settings], None],
    config_path: Path | str = Path(ConfigPaths.DEFAULT_CONFIG_FILE),
) -> None:
    """Update configuration, validate, save to file, and reload global cache.

    Args:
        updater: Callable that modifies Settings object in-place
        config_path: Path to save the configuration file
    """
    _loader.update_and_save_config(updater, config_path)
