"""Follow relations, user profiles and per-user post lists."""

from __future__ import annotations

import logging
from typing import Any

from feedsync.features.base import FeatureService, require_id
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import (
    follow_status_key,
    followers_key,
    following_key,
    profile_stats_key,
    user_posts_key,
    user_profile_key,
)
from feedsync.services.mutation_executor import Mutation
from feedsync.services.optimistic import AdjustField, OptimisticPatch, SetValue
from feedsync.services.query_cache import QueryDefinition
from feedsync.services.remote.filters import eq
from feedsync.services.remote.protocol import is_no_rows
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import ErrorCode, RemoteStoreError, create_validation_error
from feedsync.shared.models.posts import Post
from feedsync.shared.models.social import FollowEdge
from feedsync.shared.models.users import UserProfile

logger = logging.getLogger(__name__)


class FollowsService(FeatureService):
    """Follow graph reads and follow/unfollow writes."""

    def follow_status_query(self, user_id: str | None, target_user_id: str | None) -> QueryDefinition:
        """Whether ``user_id`` follows ``target_user_id``.

        Disabled when either id is missing or both are the same user.
        """

        async def fetch() -> bool:
            try:
                await self.store.select_one(
                    Tables.FOLLOWS,
                    [eq("follower_id", user_id), eq("following_id", target_user_id)],
                )
            except RemoteStoreError as e:
                if is_no_rows(e):
                    return False
                raise
            return True

        enabled = bool(user_id) and bool(target_user_id) and user_id != target_user_id
        return QueryDefinition(
            follow_status_key(user_id, target_user_id),
            fetch,
            self._options(enabled=enabled),
        )

    async def _edges(self, column: str, user_id: str, peer_column: str) -> list[FollowEdge]:
        rows = await self.store.select(Tables.FOLLOWS, [eq(column, user_id)], order_by="created_at")
        peers = await self._users_by_id(row[peer_column] for row in rows)
        return [
            FollowEdge(
                follower_id=row["follower_id"],
                following_id=row["following_id"],
                user=peers.get(row[peer_column]),
            )
            for row in rows
        ]

    def following_query(self, user_id: str | None) -> QueryDefinition:
        """Users that ``user_id`` follows."""

        async def fetch() -> list[FollowEdge]:
            return await self._edges("follower_id", user_id, "following_id")

        return QueryDefinition(following_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def followers_query(self, user_id: str | None) -> QueryDefinition:
        """Users following ``user_id``."""

        async def fetch() -> list[FollowEdge]:
            return await self._edges("following_id", user_id, "follower_id")

        return QueryDefinition(followers_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def user_posts_query(self, user_id: str | None) -> QueryDefinition:
        async def fetch() -> list[Post]:
            rows = await self.store.select(
                Tables.POSTS,
                [eq("user_id", user_id)],
                order_by="created_at",
                descending=True,
                limit=self.settings.user_posts_limit,
            )
            authors = await self._users_by_id([user_id])
            return [
                Post.model_validate({**row, "author_nickname": self._display_name(authors, row["user_id"])})
                for row in rows
            ]

        return QueryDefinition(user_posts_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def user_profile_query(self, user_id: str | None) -> QueryDefinition:
        async def fetch() -> UserProfile:
            row = await self.store.select_one(Tables.USERS, [eq("id", user_id)])
            return UserProfile.model_validate(row)

        return QueryDefinition(user_profile_key(user_id), fetch, self._options(enabled=bool(user_id)))

    def _validate_pair(self, variables: dict[str, Any]) -> None:
        require_id(variables.get("follower_id"), "follower_id", "follow")
        require_id(variables.get("following_id"), "following_id", "follow")
        if variables["follower_id"] == variables["following_id"]:
            raise create_validation_error(
                "You cannot follow yourself",
                field="following_id",
                operation="follow",
                code=ErrorCode.SELF_FOLLOW,
            )

    def _optimistic(self, follower_id: str, following_id: str, following: bool) -> list[OptimisticPatch]:
        delta = 1 if following else -1
        status_key = follow_status_key(follower_id, following_id)
        return [
            OptimisticPatch(status_key, SetValue(following, previous=self.cache.get_query_data(status_key))),
            OptimisticPatch(profile_stats_key(following_id), AdjustField("follower_count", delta)),
            OptimisticPatch(profile_stats_key(follower_id), AdjustField("following_count", delta)),
        ]

    def _mutation(self, following: bool) -> Mutation[dict[str, Any], None]:
        async def follow(variables: dict[str, Any]) -> None:
            await self.store.insert(
                Tables.FOLLOWS,
                {"follower_id": variables["follower_id"], "following_id": variables["following_id"]},
            )

        async def unfollow(variables: dict[str, Any]) -> None:
            await self.store.delete(
                Tables.FOLLOWS,
                [eq("follower_id", variables["follower_id"]), eq("following_id", variables["following_id"])],
            )

        return Mutation(
            MutationType.FOLLOW if following else MutationType.UNFOLLOW,
            follow if following else unfollow,
            validate=self._validate_pair,
            optimistic=lambda v: self._optimistic(v["follower_id"], v["following_id"], following),
            entity_key=lambda v: (v["follower_id"], v["following_id"]),
        )

    async def follow(self, follower_id: str, following_id: str) -> None:
        await self.executor.execute(
            self._mutation(True),
            {"follower_id": follower_id, "following_id": following_id},
        )

    async def unfollow(self, follower_id: str, following_id: str) -> None:
        await self.executor.execute(
            self._mutation(False),
            {"follower_id": follower_id, "following_id": following_id},
        )

    async def toggle_follow(self, follower_id: str, following_id: str) -> bool:
        """Follow or unfollow depending on the current status.

        The cached status is used when present; otherwise it is read first.

        Returns:
            True when the user now follows the target
        """
        definition = self.follow_status_query(follower_id, following_id)
        cached = self.cache.get_query_data(definition.key)
        if cached is None:
            self._validate_pair({"follower_id": follower_id, "following_id": following_id})
            cached = await self.cache.get(definition)

        if cached:
            await self.unfollow(follower_id, following_id)
            return False
        await self.follow(follower_id, following_id)
        return True


__all__ = ["FollowsService"]
