"""Feature services built on the synchronization layer."""

from feedsync.features.base import FeatureService
from feedsync.features.chats import ChatsService, canonical_pair
from feedsync.features.comments import CommentsService
from feedsync.features.follows import FollowsService
from feedsync.features.notifications import NotificationsService
from feedsync.features.posts import PostsService
from feedsync.features.profile import ProfileService
from feedsync.features.realtime import RealtimeBridge
from feedsync.features.schools import GUEST_OPTION, SCHOOLS, School, get_school_by_domain, get_school_by_id
from feedsync.features.users import UsersService
from feedsync.features.validation import (
    ValidationResult,
    check_username_available,
    validate_email,
    validate_username,
)

__all__ = [
    "GUEST_OPTION",
    "SCHOOLS",
    "ChatsService",
    "CommentsService",
    "FeatureService",
    "FollowsService",
    "NotificationsService",
    "PostsService",
    "ProfileService",
    "RealtimeBridge",
    "School",
    "UsersService",
    "ValidationResult",
    "canonical_pair",
    "check_username_available",
    "get_school_by_domain",
    "get_school_by_id",
    "validate_email",
    "validate_username",
]
