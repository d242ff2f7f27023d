"""Cache configuration model.

This module contains the query cache configuration model: staleness and
eviction windows and the retry policy applied to failed fetches.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from feedsync.shared.constants.cache import QueryCacheConfig


class CacheSettings(BaseModel):
    """Query cache configuration.

    ``stale_time`` is how long fetched data is considered fresh;
    ``gc_time`` is how long an unobserved entry survives before eviction.
    """

    stale_time: float = Field(
        default=QueryCacheConfig.DEFAULT_STALE_TIME,
        ge=0,
        description="Seconds before cached data is considered stale",
    )
    gc_time: float = Field(
        default=QueryCacheConfig.DEFAULT_GC_TIME,
        ge=0,
        description="Seconds an unobserved entry is kept before eviction",
    )
    retry: int = Field(
        default=QueryCacheConfig.DEFAULT_RETRY,
        ge=0,
        description="Number of retries after a failed fetch",
    )
    retry_delay: float = Field(
        default=QueryCacheConfig.DEFAULT_RETRY_DELAY,
        ge=0,
        description="Base delay in seconds for exponential backoff",
    )
    retry_delay_max: float = Field(
        default=QueryCacheConfig.MAX_RETRY_DELAY,
        ge=0,
        description="Upper bound for a single backoff delay",
    )

    @model_validator(mode="after")
    def _validate_windows(self) -> CacheSettings:
        if self.gc_time < self.stale_time:
            msg = "gc_time must be greater than or equal to stale_time"
            raise ValueError(msg)
        return self


__all__ = ["CacheSettings"]
