"""Bridge from remote-store realtime channels to the event bus.

Screens subscribe to the channel they show: a chat to its messages, the
inbox to the user's notifications, the home feed to new posts. Each insert
delivered by the store is published on the bus as a ``RealtimeEvent``; the
invalidation router turns it into cache invalidations.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from feedsync.services.event_bus import EventBus, RealtimeEvent, RealtimeEventType
from feedsync.services.remote.filters import Predicate, eq
from feedsync.services.remote.protocol import ChannelHandle, RemoteStore
from feedsync.shared.constants.query_keys import Channels, Tables
from feedsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError

logger = logging.getLogger(__name__)


class RealtimeBridge:
    """Subscribes store channels and republishes their inserts on the bus."""

    def __init__(self, store: RemoteStore, bus: EventBus) -> None:
        self.store = store
        self.bus = bus
        self._handles: dict[int, ChannelHandle] = {}
        self._closed = False

    @property
    def active_channels(self) -> list[str]:
        return [handle.channel_name for handle in self._handles.values()]

    def _watch(
        self,
        channel_name: str,
        table: str,
        event_type: RealtimeEventType,
        filters: Sequence[Predicate] = (),
    ) -> ChannelHandle:
        if self._closed:
            raise InfrastructureError(
                ErrorCode.SUBSCRIPTION_ERROR,
                f"Cannot open channel {channel_name} on a closed bridge",
                ErrorContext(operation="realtime_subscribe"),
            )

        def on_insert(payload: Mapping[str, Any]) -> None:
            row = dict(payload.get("new") or {})
            self.bus.publish(RealtimeEvent(event_type=event_type, channel=channel_name, payload=row))

        handle = self.store.subscribe(channel_name, table, on_insert, filters)
        self._handles[handle.handle_id] = handle
        logger.debug("Watching %s for %s", channel_name, event_type.value)
        return handle

    def watch_messages(self, chat_id: str) -> ChannelHandle:
        """New messages in one chat."""
        return self._watch(
            Channels.MESSAGES.format(chat_id=chat_id),
            Tables.MESSAGES,
            RealtimeEventType.NEW_MESSAGE,
            [eq("chat_id", chat_id)],
        )

    def watch_notifications(self, user_id: str) -> ChannelHandle:
        """New notifications addressed to one user."""
        return self._watch(
            Channels.NOTIFICATIONS.format(user_id=user_id),
            Tables.NOTIFICATIONS,
            RealtimeEventType.NEW_NOTIFICATION,
            [eq("user_id", user_id)],
        )

    def watch_posts(self) -> ChannelHandle:
        return self._watch(Channels.POSTS, Tables.POSTS, RealtimeEventType.NEW_POST)

    def unwatch(self, handle: ChannelHandle) -> None:
        if self._handles.pop(handle.handle_id, None) is not None:
            self.store.unsubscribe(handle)

    def close(self) -> None:
        for handle in list(self._handles.values()):
            self.unwatch(handle)
        self._closed = True


__all__ = ["RealtimeBridge"]
