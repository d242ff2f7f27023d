"""Row models shared by the feature services."""

from feedsync.shared.models.posts import Comment, Post
from feedsync.shared.models.social import (
    Chat,
    ChatSummary,
    FollowEdge,
    Message,
    Notification,
    NotificationType,
)
from feedsync.shared.models.users import ProfileStats, UserProfile, UserSummary

__all__ = [
    "Chat",
    "ChatSummary",
    "Comment",
    "FollowEdge",
    "Message",
    "Notification",
    "NotificationType",
    "Post",
    "ProfileStats",
    "UserProfile",
    "UserSummary",
]
