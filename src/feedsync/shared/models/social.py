"""Follow, chat, message and notification row models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from feedsync.shared.models.users import UserSummary


class FollowEdge(BaseModel):
    """Directed follow relation; the peer is the joined user row."""

    model_config = ConfigDict(frozen=True)

    follower_id: str
    following_id: str
    user: UserSummary | None = None


class Chat(BaseModel):
    """Direct conversation between two users stored in canonical order."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    user1_id: str
    user2_id: str
    created_at: str | None = None
    updated_at: str | None = None

    def other_user_id(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class Message(BaseModel):
    """A chat message."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    chat_id: str
    sender_id: str
    content: str
    is_read: bool = False
    created_at: str | None = None


class ChatSummary(BaseModel):
    """Chat list entry with its peer, latest message and unread counter."""

    model_config = ConfigDict(frozen=True)

    chat: Chat
    other_user: UserSummary | None = None
    last_message: Message | None = None
    unread_count: int = 0


class NotificationType(str, Enum):
    """Kinds of notifications created by backend triggers."""

    VOTE = "vote"
    COMMENT = "comment"
    FOLLOW = "follow"
    MESSAGE = "message"


class Notification(BaseModel):
    """A notification addressed to a user."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    user_id: str
    actor_id: str | None = None
    type: NotificationType
    post_id: str | None = None
    comment_id: str | None = None
    is_read: bool = False
    created_at: str | None = None
    actor_name: str | None = None
