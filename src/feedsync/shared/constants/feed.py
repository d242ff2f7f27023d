"""
Feed Configuration Constants

Defaults for the location feed, post and message content, and list sizes.
"""

from typing import ClassVar


class SortBy:
    """Feed sort orders accepted by the radius procedure."""

    NEW = "new"
    POPULAR = "popular"

    ALL: ClassVar[tuple[str, ...]] = (NEW, POPULAR)


class TimeFilter:
    """Feed time windows accepted by the radius procedure."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL_TIME = "all"

    ALL: ClassVar[tuple[str, ...]] = (DAY, WEEK, MONTH, ALL_TIME)

    # Window lengths in days; None means unbounded
    DAYS: ClassVar[dict[str, int | None]] = {
        DAY: 1,
        WEEK: 7,
        MONTH: 30,
        ALL_TIME: None,
    }


class FeedDefaults:
    """Feed query defaults."""

    DEFAULT_RADIUS = 5000  # meters
    ALLOWED_RADII: ClassVar[tuple[int, ...]] = (2000, 5000, 10000)
    DEFAULT_SORT = SortBy.NEW
    DEFAULT_TIME_FILTER = TimeFilter.WEEK
    PAGE_SIZE = 20

    # Mean Earth radius used by the haversine distance
    EARTH_RADIUS_METERS = 6_371_000.0


class ContentLimits:
    """Content length limits."""

    POST_MAX_LENGTH = 500
    COMMENT_MAX_LENGTH = 500
    MESSAGE_MAX_LENGTH = 2000


class ListLimits:
    """List size limits."""

    USER_POSTS = 50
    NOTIFICATIONS = 50
    USER_SEARCH = 20
