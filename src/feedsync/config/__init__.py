"""feedsync Configuration Module

This module provides unified access to configuration models and settings
management:
- Settings: Main configuration facade
- Loader functions: get_config, load_settings, reload_config, update_and_save_config
- Domain models: App, Logging, Cache, Feed settings
"""

from __future__ import annotations

from .models import (
    AppSettings,
    CacheSettings,
    FeedSettings,
    LoggingSettings,
    Settings,
)
from .loader import (
    SettingsLoader,
    get_config,
    load_settings,
    reload_config,
    update_and_save_config,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "FeedSettings",
    "LoggingSettings",
    "Settings",
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
    "update_and_save_config",
]
