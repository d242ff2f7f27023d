"""Feed configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from feedsync.shared.constants.cache import FeatureStaleTimes
from feedsync.shared.constants.feed import FeedDefaults, ListLimits, SortBy, TimeFilter


class FeedSettings(BaseModel):
    """Location feed and list settings used by the feature services."""

    default_radius: int = Field(
        default=FeedDefaults.DEFAULT_RADIUS,
        gt=0,
        description="Default feed radius in meters",
    )
    allowed_radii: list[int] = Field(
        default_factory=lambda: list(FeedDefaults.ALLOWED_RADII),
        description="Radius choices offered to users",
    )
    default_sort: str = Field(default=FeedDefaults.DEFAULT_SORT)
    default_time_filter: str = Field(default=FeedDefaults.DEFAULT_TIME_FILTER)
    page_size: int = Field(default=FeedDefaults.PAGE_SIZE, gt=0)

    posts_stale_time: float = Field(default=FeatureStaleTimes.POSTS, ge=0)
    profile_stats_stale_time: float = Field(default=FeatureStaleTimes.PROFILE_STATS, ge=0)
    user_search_stale_time: float = Field(default=FeatureStaleTimes.USER_SEARCH, ge=0)

    user_posts_limit: int = Field(default=ListLimits.USER_POSTS, gt=0)
    notifications_limit: int = Field(default=ListLimits.NOTIFICATIONS, gt=0)
    search_limit: int = Field(default=ListLimits.USER_SEARCH, gt=0)

    @model_validator(mode="after")
    def _validate_choices(self) -> FeedSettings:
        if self.default_sort not in SortBy.ALL:
            msg = f"default_sort must be one of {SortBy.ALL}"
            raise ValueError(msg)
        if self.default_time_filter not in TimeFilter.ALL:
            msg = f"default_time_filter must be one of {TimeFilter.ALL}"
            raise ValueError(msg)
        if self.default_radius not in self.allowed_radii:
            msg = "default_radius must be one of allowed_radii"
            raise ValueError(msg)
        return self


__all__ = ["FeedSettings"]
