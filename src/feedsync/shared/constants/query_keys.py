"""
Query Key Names

Root segments of every cache key used by the feature services. Keys are
tuples whose first element is one of these names.
"""


class QueryKeys:
    """Root names for cache keys."""

    POSTS = "posts"
    USER_VOTES = "user-votes"
    COMMENTS = "comments"
    COMMENT_VOTES = "comment-votes"
    FOLLOW_STATUS = "follow-status"
    FOLLOWING = "following"
    FOLLOWERS = "followers"
    USER_POSTS = "user-posts"
    USER_PROFILE = "user-profile"
    PROFILE_STATS = "profile-stats"
    CHATS = "chats"
    MESSAGES = "messages"
    NOTIFICATIONS = "notifications"
    NOTIFICATIONS_UNREAD_COUNT = "notifications-unread-count"
    USER_SEARCH = "user-search"
    USER_BY_ID = "user-by-id"


class Tables:
    """Remote store table names."""

    USERS = "users"
    POSTS = "posts"
    COMMENTS = "comments"
    VOTES_POSTS = "votes_posts"
    VOTES_COMMENTS = "votes_comments"
    FOLLOWS = "follows"
    CHATS = "chats"
    MESSAGES = "messages"
    NOTIFICATIONS = "notifications"


class Procedures:
    """Remote stored procedure names."""

    POSTS_WITHIN_RADIUS = "get_posts_within_radius"
    HANDLE_POST_VOTE = "handle_post_vote"


class Channels:
    """Realtime channel name templates."""

    MESSAGES = "messages:{chat_id}"
    NOTIFICATIONS = "notifications:{user_id}"
    POSTS = "posts"


class RemoteErrorCodes:
    """Error codes reported by the remote store."""

    UNIQUE_VIOLATION = "23505"
    CHECK_VIOLATION = "23514"
    FOREIGN_KEY_VIOLATION = "23503"
    NO_ROWS = "PGRST116"
    UNKNOWN_FUNCTION = "42883"
    UNKNOWN_TABLE = "42P01"
