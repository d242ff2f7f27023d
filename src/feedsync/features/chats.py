"""Direct chats: deterministic chat identity, chat list and messages.

A conversation between two users is stored once, with the participant ids
in canonical (sorted) order. ``resolve_chat`` returns that row whichever
participant asks and however many callers race to create it.
"""

from __future__ import annotations

import logging
from typing import Any

from feedsync.features.base import FeatureService, require_content, require_id
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import chats_key, messages_key
from feedsync.services.mutation_executor import Mutation
from feedsync.services.query_cache import QueryDefinition
from feedsync.services.remote.filters import any_of, eq, in_, neq
from feedsync.services.remote.protocol import is_unique_violation
from feedsync.shared.constants.feed import ContentLimits
from feedsync.shared.constants.logging import LogOperationNames
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import ErrorCode, RemoteStoreError, create_validation_error
from feedsync.shared.models.social import Chat, ChatSummary, Message

logger = logging.getLogger(__name__)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Order two participant ids the way the chats table stores them.

    Raises:
        DomainError: If an id is missing or both ids are the same user
    """
    require_id(user_a, "user_a", LogOperationNames.RESOLVE_CHAT)
    require_id(user_b, "user_b", LogOperationNames.RESOLVE_CHAT)
    if user_a == user_b:
        raise create_validation_error(
            "Cannot start a chat with yourself",
            field="user_b",
            operation=LogOperationNames.RESOLVE_CHAT,
            code=ErrorCode.SELF_CHAT,
        )
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class ChatsService(FeatureService):
    """Chat list, message history and chat writes."""

    async def find_chat(self, user_a: str, user_b: str) -> Chat | None:
        """Look up the conversation between two users in either ordering."""
        rows = await self.store.select(
            Tables.CHATS,
            [
                any_of(
                    (eq("user1_id", user_a), eq("user2_id", user_b)),
                    (eq("user1_id", user_b), eq("user2_id", user_a)),
                ),
            ],
            limit=1,
        )
        return Chat.model_validate(rows[0]) if rows else None

    async def resolve_chat(self, user_a: str, user_b: str) -> Chat:
        """Return the single chat between two users, creating it if needed.

        Symmetric and idempotent. When a concurrent caller creates the row
        first, the insert fails with a unique violation and the winning row
        is read back.

        Raises:
            DomainError: For a self-chat or a missing id
            FeedSyncError: If the remote store fails
        """
        first, second = canonical_pair(user_a, user_b)

        existing = await self.find_chat(first, second)
        if existing is not None:
            logger.debug("Resolved existing chat %s", existing.id)
            return existing

        async def mutate(variables: dict[str, Any]) -> Chat:
            try:
                row = await self.store.insert(
                    Tables.CHATS,
                    {"user1_id": variables["user1_id"], "user2_id": variables["user2_id"]},
                )
            except RemoteStoreError as e:
                if not is_unique_violation(e):
                    raise
                logger.info(
                    "Chat between %s and %s created concurrently, reading it back",
                    variables["user1_id"],
                    variables["user2_id"],
                    extra={"operation": LogOperationNames.RESOLVE_CHAT},
                )
                winner = await self.find_chat(variables["user1_id"], variables["user2_id"])
                if winner is None:
                    raise
                return winner
            return Chat.model_validate(row)

        mutation = Mutation(
            MutationType.CREATE_CHAT,
            mutate,
            entity_key=lambda variables: (variables["user1_id"], variables["user2_id"]),
        )
        return await self.executor.execute(mutation, {"user1_id": first, "user2_id": second})

    def chats_query(self, user_id: str | None) -> QueryDefinition:
        """Chats of a user, most recently active first.

        Each entry carries the other participant, the latest message and
        the number of unread messages sent by the other participant.
        """

        async def fetch() -> list[ChatSummary]:
            rows = await self.store.select(
                Tables.CHATS,
                [any_of((eq("user1_id", user_id),), (eq("user2_id", user_id),))],
                order_by="updated_at",
                descending=True,
            )
            chats = [Chat.model_validate(row) for row in rows]
            if not chats:
                return []

            message_rows = await self.store.select(
                Tables.MESSAGES,
                [in_("chat_id", [chat.id for chat in chats])],
                order_by="created_at",
            )
            by_chat: dict[str, list[Message]] = {}
            for row in message_rows:
                by_chat.setdefault(row["chat_id"], []).append(Message.model_validate(row))

            peers = await self._users_by_id(chat.other_user_id(user_id) for chat in chats)
            summaries = []
            for chat in chats:
                messages = by_chat.get(chat.id, [])
                summaries.append(
                    ChatSummary(
                        chat=chat,
                        other_user=peers.get(chat.other_user_id(user_id)),
                        last_message=messages[-1] if messages else None,
                        unread_count=sum(
                            1 for m in messages if not m.is_read and m.sender_id != user_id
                        ),
                    )
                )
            return summaries

        return QueryDefinition(chats_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def messages_query(self, chat_id: str | None) -> QueryDefinition:
        """Messages of a chat, oldest first."""

        async def fetch() -> list[Message]:
            rows = await self.store.select(
                Tables.MESSAGES,
                [eq("chat_id", chat_id)],
                order_by="created_at",
            )
            return [Message.model_validate(row) for row in rows]

        return QueryDefinition(messages_key(chat_id), fetch, self._options(enabled=bool(chat_id)))

    async def send_message(self, chat_id: str, sender_id: str, content: str) -> Message:
        """Send a message and bump the chat's ``updated_at``."""
        text = require_content(
            content,
            max_length=ContentLimits.MESSAGE_MAX_LENGTH,
            field="message",
            operation="send_message",
        )
        require_id(chat_id, "chat_id", "send_message")
        require_id(sender_id, "sender_id", "send_message")

        async def mutate(variables: dict[str, Any]) -> Message:
            row = await self.store.insert(
                Tables.MESSAGES,
                {
                    "chat_id": variables["chat_id"],
                    "sender_id": variables["sender_id"],
                    "content": variables["content"],
                },
            )
            await self.store.update(
                Tables.CHATS,
                {"updated_at": row["created_at"]},
                [eq("id", variables["chat_id"])],
            )
            return Message.model_validate(row)

        mutation = Mutation(MutationType.SEND_MESSAGE, mutate)
        return await self.executor.execute(
            mutation,
            {"chat_id": chat_id, "sender_id": sender_id, "content": text},
        )

    async def mark_messages_read(self, chat_id: str, user_id: str) -> int:
        """Mark every unread message from the other participant as read.

        Returns:
            Number of messages updated
        """
        require_id(chat_id, "chat_id", "mark_messages_read")
        require_id(user_id, "user_id", "mark_messages_read")

        async def mutate(variables: dict[str, Any]) -> int:
            updated = await self.store.update(
                Tables.MESSAGES,
                {"is_read": True},
                [
                    eq("chat_id", variables["chat_id"]),
                    neq("sender_id", variables["user_id"]),
                    eq("is_read", False),
                ],
            )
            return len(updated)

        mutation = Mutation(MutationType.MARK_MESSAGES_READ, mutate)
        return await self.executor.execute(mutation, {"chat_id": chat_id, "user_id": user_id})


__all__ = ["ChatsService", "canonical_pair"]
