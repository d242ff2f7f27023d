"""Shared plumbing for the feature services."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from feedsync.config.models.feed_settings import FeedSettings
from feedsync.services.mutation_executor import MutationExecutor
from feedsync.services.query_cache import QueryCache, QueryOptions
from feedsync.services.remote.filters import in_
from feedsync.services.remote.protocol import RemoteStore
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import ErrorCode, create_validation_error
from feedsync.shared.models.users import UserSummary

logger = logging.getLogger(__name__)


def require_content(
    content: str | None,
    *,
    max_length: int,
    field: str = "content",
    operation: str | None = None,
) -> str:
    """Trim user-entered text and reject empty or oversized values.

    Raises:
        DomainError: If the trimmed text is empty or too long
    """
    trimmed = (content or "").strip()
    if not trimmed:
        raise create_validation_error(
            f"{field.capitalize()} cannot be empty",
            field=field,
            operation=operation,
            code=ErrorCode.EMPTY_CONTENT,
        )
    if len(trimmed) > max_length:
        raise create_validation_error(
            f"{field.capitalize()} must be {max_length} characters or less",
            field=field,
            operation=operation,
            code=ErrorCode.CONTENT_TOO_LONG,
        )
    return trimmed


def require_id(value: str | None, field: str, operation: str | None = None) -> str:
    if not value:
        raise create_validation_error(
            f"{field} is required",
            field=field,
            operation=operation,
            code=ErrorCode.MISSING_REQUIRED_FIELD,
        )
    return value


class FeatureService:
    """Base class wiring a feature to the store, cache and executor.

    Args:
        store: Remote data store
        cache: Query cache shared by every feature
        executor: Mutation executor shared by every feature
        settings: Feed and list settings
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: QueryCache,
        executor: MutationExecutor,
        settings: FeedSettings | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.executor = executor
        self.settings = settings or FeedSettings()

    @staticmethod
    def _options(*, enabled: bool = True, stale_time: float | None = None) -> QueryOptions:
        return QueryOptions(stale_time=stale_time, enabled=enabled)

    async def _users_by_id(self, user_ids: Iterable[str | None]) -> dict[str, UserSummary]:
        """Load the public projection of several users in one read."""
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        rows = await self.store.select(Tables.USERS, [in_("id", ids)])
        return {row["id"]: UserSummary.model_validate(row) for row in rows}

    @staticmethod
    def _display_name(users: dict[str, UserSummary], user_id: Any) -> str:
        user = users.get(user_id)
        return user.display_name if user is not None else UserSummary(id=str(user_id)).display_name


__all__ = ["FeatureService", "require_content", "require_id"]
