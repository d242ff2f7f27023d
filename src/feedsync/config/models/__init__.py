"""Configuration models for feedsync."""

from feedsync.config.models.app_settings import AppSettings, LoggingSettings
from feedsync.config.models.cache_settings import CacheSettings
from feedsync.config.models.feed_settings import FeedSettings
from feedsync.config.models.settings import Settings

__all__ = [
    "AppSettings",
    "CacheSettings",
    "FeedSettings",
    "LoggingSettings",
    "Settings",
]
