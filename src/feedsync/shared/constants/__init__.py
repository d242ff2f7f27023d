"""
feedsync Constants Module

Centralized constants for the feedsync package. All magic values and
configuration defaults are defined here.
"""

from .application import Application, ConfigPaths
from .cache import FeatureStaleTimes, QueryCacheConfig
from .cli import CLICommands, CLIDefaults, CLIHelp, CLIMessages, CLIOptions
from .feed import ContentLimits, FeedDefaults, ListLimits, SortBy, TimeFilter
from .logging import LogConfig, LogOperationNames
from .query_keys import Channels, Procedures, QueryKeys, RemoteErrorCodes, Tables
from .validation import DisplayNames, EmailRules, ProfileRules, SearchRules, UsernameRules

__all__ = [
    "Application",
    "CLICommands",
    "CLIDefaults",
    "CLIHelp",
    "CLIMessages",
    "CLIOptions",
    "Channels",
    "ConfigPaths",
    "ContentLimits",
    "DisplayNames",
    "EmailRules",
    "FeatureStaleTimes",
    "FeedDefaults",
    "ListLimits",
    "LogConfig",
    "LogOperationNames",
    "Procedures",
    "ProfileRules",
    "QueryCacheConfig",
    "QueryKeys",
    "RemoteErrorCodes",
    "SearchRules",
    "SortBy",
    "Tables",
    "TimeFilter",
    "UsernameRules",
]
