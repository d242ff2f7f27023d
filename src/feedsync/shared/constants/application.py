"""
Application Constants

Application identity shared by the CLI and configuration.
"""


class Application:
    """Application identity."""

    NAME = "feedsync"
    VERSION = "0.1.0"
    DESCRIPTION = "Client-side synchronization layer for a campus social feed"


class ConfigPaths:
    """Configuration file lookup paths."""

    DEFAULT_CONFIG_FILE = "config/config.toml"
    LOCAL_CONFIG_FILE = "config.toml"
    USER_CONFIG_DIR = ".feedsync"
    USER_CONFIG_FILE = "config.toml"
    ENV_FILE = ".env"
    ENV_PREFIX = "FEEDSYNC_"
