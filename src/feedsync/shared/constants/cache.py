"""
Cache Configuration Constants

This module provides the timing constants used by the query cache and the
per-feature query definitions.
"""

# Base time units for stale/eviction calculations (seconds)
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE


class QueryCacheConfig:
    """Query cache defaults."""

    # Entries older than this are served but refetched in the background
    DEFAULT_STALE_TIME = 5 * BASE_MINUTE
    # Entries unobserved for longer than this are dropped
    DEFAULT_GC_TIME = 30 * BASE_MINUTE

    # Retry policy
    DEFAULT_RETRY = 1
    DEFAULT_RETRY_DELAY = 1.0
    MAX_RETRY_DELAY = 30.0
    BACKOFF_FACTOR = 2


class FeatureStaleTimes:
    """Per-feature stale windows (seconds)."""

    POSTS = 1 * BASE_MINUTE
    PROFILE_STATS = 5 * BASE_MINUTE
    USER_SEARCH = 5 * BASE_MINUTE
