"""User search and lookup."""

from __future__ import annotations

import logging

from feedsync.features.base import FeatureService
from feedsync.services.keys import user_by_id_key, user_search_key
from feedsync.services.query_cache import QueryDefinition
from feedsync.services.remote.filters import eq, ilike, neq
from feedsync.services.remote.protocol import is_no_rows
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.constants.validation import SearchRules
from feedsync.shared.errors import RemoteStoreError
from feedsync.shared.models.users import UserSummary

logger = logging.getLogger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UsersService(FeatureService):
    def search_query(self, term: str | None, current_user_id: str | None) -> QueryDefinition:
        """Find users by id or by username.

        A full UUID matches that user exactly; anything else is a
        case-insensitive partial match on the username. The searching user
        is never part of the results. Terms shorter than two characters
        after trimming disable the query.
        """
        trimmed = (term or "").strip()

        async def fetch() -> list[UserSummary]:
            if len(trimmed) < SearchRules.MIN_TERM_LENGTH:
                return []

            if SearchRules.UUID_PATTERN.match(trimmed):
                try:
                    row = await self.store.select_one(
                        Tables.USERS,
                        [eq("id", trimmed), neq("id", current_user_id)],
                    )
                except RemoteStoreError as e:
                    if is_no_rows(e):
                        return []
                    raise
                return [UserSummary.model_validate(row)]

            rows = await self.store.select(
                Tables.USERS,
                [ilike("username", f"%{_escape_like(trimmed)}%"), neq("id", current_user_id)],
                limit=self.settings.search_limit,
            )
            return [UserSummary.model_validate(row) for row in rows]

        enabled = len(trimmed) >= SearchRules.MIN_TERM_LENGTH and bool(current_user_id)
        return QueryDefinition(
            user_search_key(term or "", current_user_id),
            fetch,
            self._options(enabled=enabled, stale_time=self.settings.user_search_stale_time),
        )

    async def search(self, term: str | None, current_user_id: str | None) -> list[UserSummary]:
        return await self.cache.get(self.search_query(term, current_user_id)) or []

    def user_by_id_query(self, user_id: str | None) -> QueryDefinition:
        async def fetch() -> UserSummary:
            row = await self.store.select_one(Tables.USERS, [eq("id", user_id)])
            return UserSummary.model_validate(row)

        return QueryDefinition(user_by_id_key(user_id), fetch, self._options(enabled=bool(user_id)))


__all__ = ["UsersService"]
