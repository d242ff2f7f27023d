"""Query key normalisation, prefix matching and key builders.

A query key is a tuple of scalars whose first element names the query
(``"posts"``, ``"follow-status"``...). Patterns are keys too: a pattern
matches every key it is a prefix of, so ``("posts",)`` selects every feed
variant while a full variant key only selects itself.
"""

from __future__ import annotations

from typing import Any, Iterable, Tuple, Union

from feedsync.shared.constants.query_keys import QueryKeys
from feedsync.shared.errors import ErrorCode, create_validation_error

Scalar = Union[str, int, float, bool, None]
QueryKey = Tuple[Scalar, ...]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def normalize_key(key: Iterable[Any] | str) -> QueryKey:
    """Convert a list or tuple into a hashable query key.

    Args:
        key: Sequence of scalar parts. A bare string is treated as a
            single-part key.

    Returns:
        The key as a tuple

    Raises:
        DomainError: If the key is empty or contains a non-scalar part
    """
    parts: tuple[Any, ...] = (key,) if isinstance(key, str) else tuple(key)

    if not parts:
        raise create_validation_error(
            "Query key must have at least one part",
            field="key",
            operation="normalize_key",
            code=ErrorCode.INVALID_QUERY_KEY,
        )

    for part in parts:
        if not isinstance(part, _SCALAR_TYPES):
            raise create_validation_error(
                f"Query key parts must be scalars, got {type(part).__name__}",
                field="key",
                operation="normalize_key",
                code=ErrorCode.INVALID_QUERY_KEY,
            )

    return parts


def make_key(*parts: Scalar) -> QueryKey:
    """Build a query key from positional parts."""
    return normalize_key(parts)


def matches(key: QueryKey, pattern: QueryKey) -> bool:
    """Return True when ``pattern`` is a prefix of ``key``."""
    if len(pattern) > len(key):
        return False
    return key[: len(pattern)] == pattern


def posts_key(
    latitude: float | None = None,
    longitude: float | None = None,
    radius: int | None = None,
    sort_by: str | None = None,
    time_filter: str | None = None,
) -> QueryKey:
    return (QueryKeys.POSTS, latitude, longitude, radius, sort_by, time_filter)


def user_votes_key(user_id: str) -> QueryKey:
    return (QueryKeys.USER_VOTES, user_id)


def comments_key(post_id: str) -> QueryKey:
    return (QueryKeys.COMMENTS, post_id)


def comment_votes_key(post_id: str, user_id: str | None = None) -> QueryKey:
    if user_id is None:
        return (QueryKeys.COMMENT_VOTES, post_id)
    return (QueryKeys.COMMENT_VOTES, post_id, user_id)


def follow_status_key(follower_id: str, following_id: str) -> QueryKey:
    return (QueryKeys.FOLLOW_STATUS, follower_id, following_id)


def following_key(user_id: str) -> QueryKey:
    return (QueryKeys.FOLLOWING, user_id)


def followers_key(user_id: str) -> QueryKey:
    return (QueryKeys.FOLLOWERS, user_id)


def user_posts_key(user_id: str) -> QueryKey:
    return (QueryKeys.USER_POSTS, user_id)


def user_profile_key(user_id: str) -> QueryKey:
    return (QueryKeys.USER_PROFILE, user_id)


def profile_stats_key(user_id: str) -> QueryKey:
    return (QueryKeys.PROFILE_STATS, user_id)


def chats_key(user_id: str) -> QueryKey:
    return (QueryKeys.CHATS, user_id)


def messages_key(chat_id: str) -> QueryKey:
    return (QueryKeys.MESSAGES, chat_id)


def notifications_key(user_id: str) -> QueryKey:
    return (QueryKeys.NOTIFICATIONS, user_id)


def unread_count_key(user_id: str) -> QueryKey:
    return (QueryKeys.NOTIFICATIONS_UNREAD_COUNT, user_id)


def user_search_key(term: str, current_user_id: str | None) -> QueryKey:
    return (QueryKeys.USER_SEARCH, term, current_user_id)


def user_by_id_key(user_id: str) -> QueryKey:
    return (QueryKeys.USER_BY_ID, user_id)


__all__ = [
    "QueryKey",
    "Scalar",
    "chats_key",
    "comment_votes_key",
    "comments_key",
    "follow_status_key",
    "followers_key",
    "following_key",
    "make_key",
    "matches",
    "messages_key",
    "normalize_key",
    "notifications_key",
    "posts_key",
    "profile_stats_key",
    "unread_count_key",
    "user_by_id_key",
    "user_posts_key",
    "user_profile_key",
    "user_search_key",
    "user_votes_key",
]
