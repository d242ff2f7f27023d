"""Static mapping from mutations and realtime events to cache key patterns.

Each rule is a template: a root key name followed by the names of the
variables that complete the pattern. ``("posts",)`` invalidates every feed
variant; ``("messages", "chat_id")`` invalidates one conversation.

Invalidation is fire-and-forget. Refetch failures are recorded by the
query cache, not reported back here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

from feedsync.services.event_bus import EventBus, RealtimeEvent, RealtimeEventType, Subscription
from feedsync.services.keys import QueryKey
from feedsync.services.query_cache import QueryCache
from feedsync.shared.constants.query_keys import QueryKeys
from feedsync.shared.errors import create_validation_error

logger = logging.getLogger(__name__)

KeyTemplate = tuple[str, ...]


class MutationType(str, Enum):
    """Every remote write issued by the feature services."""

    CREATE_POST = "create_post"
    VOTE_POST = "vote_post"
    CREATE_COMMENT = "create_comment"
    VOTE_COMMENT = "vote_comment"
    DELETE_COMMENT = "delete_comment"
    FOLLOW = "follow"
    UNFOLLOW = "unfollow"
    CREATE_CHAT = "create_chat"
    SEND_MESSAGE = "send_message"
    MARK_MESSAGES_READ = "mark_messages_read"
    MARK_NOTIFICATION_READ = "mark_notification_read"
    MARK_ALL_NOTIFICATIONS_READ = "mark_all_notifications_read"
    DELETE_NOTIFICATION = "delete_notification"
    UPDATE_PROFILE = "update_profile"
    UPDATE_LOCATION_RADIUS = "update_location_radius"


_FOLLOW_RULES: tuple[KeyTemplate, ...] = (
    (QueryKeys.FOLLOW_STATUS, "follower_id", "following_id"),
    (QueryKeys.FOLLOWING, "follower_id"),
    (QueryKeys.FOLLOWERS, "following_id"),
    (QueryKeys.PROFILE_STATS,),
)

_NOTIFICATION_RULES: tuple[KeyTemplate, ...] = (
    (QueryKeys.NOTIFICATIONS,),
    (QueryKeys.NOTIFICATIONS_UNREAD_COUNT,),
)

MUTATION_RULES: dict[MutationType, tuple[KeyTemplate, ...]] = {
    MutationType.CREATE_POST: ((QueryKeys.POSTS,),),
    MutationType.VOTE_POST: (
        (QueryKeys.USER_VOTES, "user_id"),
        (QueryKeys.POSTS,),
    ),
    MutationType.CREATE_COMMENT: (
        (QueryKeys.COMMENTS, "post_id"),
        (QueryKeys.POSTS,),
    ),
    MutationType.VOTE_COMMENT: (
        (QueryKeys.COMMENTS, "post_id"),
        (QueryKeys.COMMENT_VOTES, "post_id"),
    ),
    MutationType.DELETE_COMMENT: (
        (QueryKeys.COMMENTS, "post_id"),
        (QueryKeys.POSTS,),
    ),
    MutationType.FOLLOW: _FOLLOW_RULES,
    MutationType.UNFOLLOW: _FOLLOW_RULES,
    MutationType.CREATE_CHAT: ((QueryKeys.CHATS,),),
    MutationType.SEND_MESSAGE: (
        (QueryKeys.MESSAGES, "chat_id"),
        (QueryKeys.CHATS,),
    ),
    MutationType.MARK_MESSAGES_READ: (
        (QueryKeys.MESSAGES, "chat_id"),
        (QueryKeys.CHATS,),
    ),
    MutationType.MARK_NOTIFICATION_READ: _NOTIFICATION_RULES,
    MutationType.MARK_ALL_NOTIFICATIONS_READ: _NOTIFICATION_RULES,
    MutationType.DELETE_NOTIFICATION: _NOTIFICATION_RULES,
    MutationType.UPDATE_PROFILE: ((QueryKeys.USER_PROFILE, "user_id"),),
    MutationType.UPDATE_LOCATION_RADIUS: (
        (QueryKeys.USER_PROFILE, "user_id"),
        (QueryKeys.POSTS,),
    ),
}

EVENT_RULES: dict[RealtimeEventType, tuple[KeyTemplate, ...]] = {
    RealtimeEventType.NEW_MESSAGE: ((QueryKeys.MESSAGES, "chat_id"),),
    RealtimeEventType.NEW_NOTIFICATION: (
        (QueryKeys.NOTIFICATIONS, "user_id"),
        (QueryKeys.NOTIFICATIONS_UNREAD_COUNT, "user_id"),
    ),
    RealtimeEventType.NEW_POST: ((QueryKeys.POSTS,),),
}


def _lookup(variables: Mapping[str, Any] | Any, name: str) -> Any:
    if isinstance(variables, Mapping):
        return variables.get(name)
    return getattr(variables, name, None)


def resolve(
    templates: tuple[KeyTemplate, ...],
    variables: Mapping[str, Any] | Any,
    *,
    operation: str,
) -> list[QueryKey]:
    """Turn key templates into concrete patterns.

    Raises:
        DomainError: If a variable named by a template is missing
    """
    patterns: list[QueryKey] = []
    for root, *names in templates:
        parts: list[Any] = [root]
        for name in names:
            value = _lookup(variables, name)
            if value is None:
                raise create_validation_error(
                    f"Missing '{name}' to resolve invalidation rule '{root}'",
                    field=name,
                    operation=operation,
                )
            parts.append(value)
        patterns.append(tuple(parts))
    return patterns


def describe(template: KeyTemplate) -> str:
    """Render a template the way the rule tables are documented."""
    root, *names = template
    return f"{root}[{', '.join(names) if names else '*'}]"


class InvalidationRouter:
    """Invalidates cache keys after successful mutations and realtime pushes."""

    def __init__(
        self,
        cache: QueryCache,
        mutation_rules: Mapping[MutationType, tuple[KeyTemplate, ...]] | None = None,
        event_rules: Mapping[RealtimeEventType, tuple[KeyTemplate, ...]] | None = None,
    ) -> None:
        self.cache = cache
        self.mutation_rules = dict(mutation_rules or MUTATION_RULES)
        self.event_rules = dict(event_rules or EVENT_RULES)
        self._subscriptions: list[Subscription] = []

    def patterns_for_mutation(
        self,
        mutation_type: MutationType,
        variables: Mapping[str, Any] | Any,
    ) -> list[QueryKey]:
        mutation_type = MutationType(mutation_type)
        templates = self.mutation_rules.get(mutation_type, ())
        return resolve(templates, variables, operation=f"invalidate:{mutation_type.value}")

    def patterns_for_event(self, event: RealtimeEvent) -> list[QueryKey]:
        templates = self.event_rules.get(event.event_type, ())
        return resolve(templates, event.payload, operation=f"realtime:{event.event_type.value}")

    def on_mutation_success(
        self,
        mutation_type: MutationType,
        variables: Mapping[str, Any] | Any,
    ) -> list[QueryKey]:
        """Invalidate every pattern mapped to a mutation type.

        Returns:
            The patterns that were invalidated
        """
        patterns = self.patterns_for_mutation(mutation_type, variables)
        for pattern in patterns:
            self.cache.invalidate(pattern)
        logger.debug("Mutation %s invalidated %s", MutationType(mutation_type).value, patterns)
        return patterns

    def on_event(self, event: RealtimeEvent) -> list[QueryKey]:
        """Invalidate every pattern mapped to a realtime event type."""
        patterns = self.patterns_for_event(event)
        for pattern in patterns:
            self.cache.invalidate(pattern)
        logger.debug("Event %s invalidated %s", event.event_type.value, patterns)
        return patterns

    def attach(self, bus: EventBus) -> list[Subscription]:
        """Subscribe to every realtime event type that has rules."""
        for event_type in self.event_rules:
            self._subscriptions.append(bus.subscribe(event_type, self.on_event))
        return list(self._subscriptions)

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()


__all__ = [
    "EVENT_RULES",
    "MUTATION_RULES",
    "InvalidationRouter",
    "KeyTemplate",
    "MutationType",
    "describe",
    "resolve",
]
