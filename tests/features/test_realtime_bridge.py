"""Tests for republishing store inserts as realtime events."""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB

from feedsync.features.realtime import RealtimeBridge
from feedsync.services.event_bus import EventBus, RealtimeEvent, RealtimeEventType
from feedsync.services.invalidation_router import InvalidationRouter
from feedsync.services.keys import messages_key, notifications_key, unread_count_key
from feedsync.services.query_cache import QueryCache
from feedsync.services.remote.memory_store import InMemoryRemoteStore
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import ErrorCode, InfrastructureError


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def bridge(store: InMemoryRemoteStore, bus: EventBus) -> RealtimeBridge:
    return RealtimeBridge(store, bus)


@pytest.mark.asyncio
async def test_message_insert_reaches_subscribers(
    bridge: RealtimeBridge,
    bus: EventBus,
    store: InMemoryRemoteStore,
) -> None:
    received: list[RealtimeEvent] = []
    bus.subscribe(RealtimeEventType.NEW_MESSAGE, received.append)
    bridge.watch_messages("c1")

    await store.insert(Tables.MESSAGES, {"chat_id": "c1", "sender_id": BOB, "content": "yo"})
    await store.insert(Tables.MESSAGES, {"chat_id": "c2", "sender_id": BOB, "content": "elsewhere"})
    await bus.drain()

    assert [event.payload["content"] for event in received] == ["yo"]
    assert received[0].channel == "messages:c1"
    await bus.close()


@pytest.mark.asyncio
async def test_notification_insert_invalidates_inbox(
    bridge: RealtimeBridge,
    bus: EventBus,
    store: InMemoryRemoteStore,
    cache: QueryCache,
    router: InvalidationRouter,
) -> None:
    router.attach(bus)
    cache.set_query_data(notifications_key(ALICE), [])
    cache.set_query_data(unread_count_key(ALICE), 0)
    cache.set_query_data(messages_key("c1"), [])
    bridge.watch_notifications(ALICE)

    await store.insert(Tables.NOTIFICATIONS, {"user_id": ALICE, "actor_id": BOB, "type": "follow"})
    await bus.drain()

    assert cache.get_state(notifications_key(ALICE)).is_invalidated
    assert cache.get_state(unread_count_key(ALICE)).is_invalidated
    assert not cache.get_state(messages_key("c1")).is_invalidated
    router.detach()
    await bus.close()


@pytest.mark.asyncio
async def test_close_releases_every_channel(bridge: RealtimeBridge, store: InMemoryRemoteStore) -> None:
    bridge.watch_posts()
    handle = bridge.watch_messages("c1")
    assert sorted(bridge.active_channels) == ["messages:c1", "posts"]

    bridge.unwatch(handle)
    assert store.channel_count == 1

    bridge.close()
    assert store.channel_count == 0
    with pytest.raises(InfrastructureError) as exc_info:
        bridge.watch_posts()
    assert exc_info.value.code == ErrorCode.SUBSCRIPTION_ERROR
