"""Typed event bus for realtime push events.

Transport code publishes ``RealtimeEvent`` objects; policy code subscribes
by event type. Each subscription owns a queue drained by its own task, so a
handler invocation always finishes before the next one for the same
subscription starts.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, Field

from feedsync.shared.constants.logging import LogOperationNames
from feedsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError

logger = logging.getLogger(__name__)


class RealtimeEventType(str, Enum):
    """Kinds of push events delivered by the realtime channel."""

    NEW_MESSAGE = "new_message"
    NEW_NOTIFICATION = "new_notification"
    NEW_POST = "new_post"


class RealtimeEvent(BaseModel):
    """A push event received from a realtime channel."""

    event_type: RealtimeEventType
    channel: str
    payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[RealtimeEvent], Union[Awaitable[None], None]]


class Subscription:
    """One handler bound to one event type, with its own delivery queue."""

    def __init__(self, bus: EventBus, event_type: RealtimeEventType, handler: Handler) -> None:
        self.bus = bus
        self.event_type = event_type
        self.handler = handler
        self.queue: asyncio.Queue[RealtimeEvent] = asyncio.Queue()
        self.delivered = 0
        self.failed = 0
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._run())

    def unsubscribe(self) -> None:
        self.bus._remove(self)

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                result = self.handler(event)
                if inspect.isawaitable(result):
                    await result
                self.delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.exception(
                    "Realtime handler failed for %s on %s",
                    event.event_type.value,
                    event.channel,
                    extra={
                        "operation": LogOperationNames.REALTIME_DISPATCH,
                        "error_code": ErrorCode.SUBSCRIPTION_ERROR.value,
                        "context": {"error": str(e)},
                    },
                )
            finally:
                self.queue.task_done()

    async def _stop(self) -> None:
        self._closed = True
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None


class EventBus:
    """Publish/subscribe hub keyed by ``RealtimeEventType``."""

    def __init__(self) -> None:
        self._subscriptions: dict[RealtimeEventType, list[Subscription]] = {
            event_type: [] for event_type in RealtimeEventType
        }
        self._closed = False

    def subscribe(self, event_type: RealtimeEventType, handler: Handler) -> Subscription:
        """Register a handler for one event type.

        Must be called from within a running event loop.

        Raises:
            InfrastructureError: If the bus has been closed
        """
        if self._closed:
            raise InfrastructureError(
                ErrorCode.SUBSCRIPTION_ERROR,
                "Cannot subscribe to a closed event bus",
                ErrorContext(operation="subscribe", additional_data={"event_type": event_type}),
            )
        subscription = Subscription(self, RealtimeEventType(event_type), handler)
        subscription.start()
        self._subscriptions[subscription.event_type].append(subscription)
        return subscription

    def publish(self, event: RealtimeEvent) -> int:
        """Queue an event for every subscriber of its type.

        Returns:
            Number of subscriptions the event was queued for
        """
        if self._closed:
            logger.debug("Dropping %s published to closed bus", event.event_type.value)
            return 0
        targets = [sub for sub in self._subscriptions[event.event_type] if not sub.closed]
        for subscription in targets:
            subscription.queue.put_nowait(event)
        logger.debug(
            "Published %s on %s to %d subscriber(s)",
            event.event_type.value,
            event.channel,
            len(targets),
        )
        return len(targets)

    def subscriber_count(self, event_type: RealtimeEventType | None = None) -> int:
        if event_type is None:
            return sum(len(subs) for subs in self._subscriptions.values())
        return len(self._subscriptions[RealtimeEventType(event_type)])

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                await subscription.queue.join()

    async def close(self) -> None:
        """Stop all workers and reject further subscriptions."""
        self._closed = True
        for subscriptions in self._subscriptions.values():
            for subscription in list(subscriptions):
                await subscription._stop()
            subscriptions.clear()

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions[subscription.event_type]
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        subscription._closed = True
        if subscription._worker is not None:
            subscription._worker.cancel()
            subscription._worker = None


__all__ = [
    "EventBus",
    "Handler",
    "RealtimeEvent",
    "RealtimeEventType",
    "Subscription",
]
