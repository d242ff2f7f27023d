"""Notification inbox."""

from __future__ import annotations

import logging
from typing import Any

from feedsync.features.base import FeatureService, require_id
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import notifications_key, unread_count_key
from feedsync.services.mutation_executor import Mutation
from feedsync.services.query_cache import QueryDefinition
from feedsync.services.remote.filters import eq
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.constants.validation import DisplayNames
from feedsync.shared.models.social import Notification

logger = logging.getLogger(__name__)


class NotificationsService(FeatureService):
    def notifications_query(self, user_id: str | None) -> QueryDefinition:
        """Latest notifications of a user, newest first, with actor names."""

        async def fetch() -> list[Notification]:
            rows = await self.store.select(
                Tables.NOTIFICATIONS,
                [eq("user_id", user_id)],
                order_by="created_at",
                descending=True,
                limit=self.settings.notifications_limit,
            )
            actors = await self._users_by_id(row.get("actor_id") for row in rows)
            notifications = []
            for row in rows:
                actor = actors.get(row.get("actor_id"))
                if actor is None:
                    actor_name = DisplayNames.UNKNOWN_ACTOR
                elif actor.is_anonymous:
                    actor_name = DisplayNames.ANONYMOUS
                else:
                    actor_name = actor.nickname or DisplayNames.UNKNOWN_ACTOR
                notifications.append(Notification.model_validate({**row, "actor_name": actor_name}))
            return notifications

        return QueryDefinition(notifications_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def unread_count_query(self, user_id: str | None) -> QueryDefinition:
        async def fetch() -> int:
            return await self.store.count(
                Tables.NOTIFICATIONS,
                [eq("user_id", user_id), eq("is_read", False)],
            )

        return QueryDefinition(unread_count_key(user_id), fetch, self._options(enabled=bool(user_id)))

    async def mark_read(self, notification_id: str) -> None:
        require_id(notification_id, "notification_id", "mark_notification_read")

        async def mutate(variables: dict[str, Any]) -> None:
            await self.store.update(
                Tables.NOTIFICATIONS,
                {"is_read": True},
                [eq("id", variables["notification_id"])],
            )

        await self.executor.execute(
            Mutation(MutationType.MARK_NOTIFICATION_READ, mutate),
            {"notification_id": notification_id},
        )

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        require_id(user_id, "user_id", "mark_all_notifications_read")

        async def mutate(variables: dict[str, Any]) -> int:
            updated = await self.store.update(
                Tables.NOTIFICATIONS,
                {"is_read": True},
                [eq("user_id", variables["user_id"]), eq("is_read", False)],
            )
            return len(updated)

        return await self.executor.execute(
            Mutation(MutationType.MARK_ALL_NOTIFICATIONS_READ, mutate),
            {"user_id": user_id},
        )

    async def delete(self, notification_id: str) -> None:
        require_id(notification_id, "notification_id", "delete_notification")

        async def mutate(variables: dict[str, Any]) -> None:
            await self.store.delete(Tables.NOTIFICATIONS, [eq("id", variables["notification_id"])])

        await self.executor.execute(
            Mutation(MutationType.DELETE_NOTIFICATION, mutate),
            {"notification_id": notification_id},
        )


__all__ = ["NotificationsService"]
