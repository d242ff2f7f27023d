"""Location feed, post creation and post voting."""

from __future__ import annotations

import logging
from typing import Any

from feedsync.config.models.feed_settings import FeedSettings
from feedsync.features.base import FeatureService, require_content, require_id
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import posts_key, user_votes_key
from feedsync.services.mutation_executor import Mutation, MutationExecutor
from feedsync.services.optimistic import AdjustListItem, OptimisticPatch, SetMappingItem
from feedsync.services.query_cache import QueryCache, QueryDefinition
from feedsync.services.remote.filters import eq
from feedsync.services.remote.protocol import RemoteStore
from feedsync.services.state_machine import (
    VoteAction,
    VoteState,
    VoteStateMachine,
    VoteTransition,
    VoteWrite,
)
from feedsync.shared.constants.feed import ContentLimits, SortBy, TimeFilter
from feedsync.shared.constants.query_keys import Procedures, QueryKeys, Tables
from feedsync.shared.errors import ErrorCode, FeedSyncError, create_validation_error
from feedsync.shared.models.posts import Post

logger = logging.getLogger(__name__)


class PostsService(FeatureService):
    """Feed reads and post writes.

    Votes go through a ``VoteStateMachine`` so the provisional state of a
    rapid toggle sequence is tracked per (user, post).
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: QueryCache,
        executor: MutationExecutor,
        settings: FeedSettings | None = None,
        votes: VoteStateMachine | None = None,
    ) -> None:
        super().__init__(store, cache, executor, settings)
        self.votes = votes or VoteStateMachine()

    def posts_query(
        self,
        latitude: float | None,
        longitude: float | None,
        radius: int | None = None,
        sort_by: str | None = None,
        time_filter: str | None = None,
    ) -> QueryDefinition:
        """Posts within ``radius`` meters of a location.

        Disabled until both coordinates are known.

        Raises:
            DomainError: If the sort order or time window is unknown
        """
        radius = radius if radius is not None else self.settings.default_radius
        sort_by = sort_by or self.settings.default_sort
        time_filter = time_filter or self.settings.default_time_filter
        if sort_by not in SortBy.ALL:
            raise create_validation_error(
                f"Unknown sort order: {sort_by}",
                field="sort_by",
                operation="posts_query",
                code=ErrorCode.INVALID_FEED_FILTER,
            )
        if time_filter not in TimeFilter.ALL:
            raise create_validation_error(
                f"Unknown time filter: {time_filter}",
                field="time_filter",
                operation="posts_query",
                code=ErrorCode.INVALID_FEED_FILTER,
            )

        async def fetch() -> list[Post]:
            rows = await self.store.rpc(
                Procedures.POSTS_WITHIN_RADIUS,
                {
                    "user_lat": latitude,
                    "user_lon": longitude,
                    "radius_meters": radius,
                    "sort_by": sort_by,
                    "time_filter": time_filter,
                    "limit_count": self.settings.page_size,
                },
            )
            return [Post.model_validate(row) for row in rows or []]

        return QueryDefinition(
            posts_key(latitude, longitude, radius, sort_by, time_filter),
            fetch,
            self._options(
                enabled=latitude is not None and longitude is not None,
                stale_time=self.settings.posts_stale_time,
            ),
        )

    async def get_posts(self, latitude: float | None, longitude: float | None, **kwargs: Any) -> list[Post]:
        return await self.cache.get(self.posts_query(latitude, longitude, **kwargs)) or []

    def user_votes_query(self, user_id: str | None) -> QueryDefinition:
        """Map of post id to the user's vote type."""

        async def fetch() -> dict[str, int]:
            rows = await self.store.select(Tables.VOTES_POSTS, [eq("user_id", user_id)])
            return {row["post_id"]: row["vote_type"] for row in rows}

        return QueryDefinition(user_votes_key(user_id), fetch, self._options(enabled=bool(user_id)))

    async def create_post(
        self,
        user_id: str,
        content: str,
        latitude: float | None,
        longitude: float | None,
        location_name: str | None = None,
    ) -> Post:
        async def mutate(variables: dict[str, Any]) -> Post:
            row = await self.store.insert(
                Tables.POSTS,
                {
                    "user_id": variables["user_id"],
                    "content": variables["content"],
                    "latitude": latitude,
                    "longitude": longitude,
                    "location_name": location_name,
                },
            )
            return Post.model_validate(row)

        text = require_content(content, max_length=ContentLimits.POST_MAX_LENGTH, operation="create_post")
        require_id(user_id, "user_id", "create_post")
        mutation = Mutation(MutationType.CREATE_POST, mutate)
        return await self.executor.execute(mutation, {"user_id": user_id, "content": text})

    def current_vote(self, user_id: str, post_id: str) -> VoteState:
        """The vote shown to the user: cached vote map first, tracked state otherwise."""
        votes = self.cache.get_query_data(user_votes_key(user_id))
        if votes is not None:
            return VoteState.from_vote_type(votes.get(post_id))
        return self.votes.state(user_id, post_id)

    async def vote_post(self, user_id: str, post_id: str, action: VoteAction) -> VoteTransition:
        """Toggle the user's vote on a post.

        The vote map and every cached feed are patched before the write and
        restored if it fails.

        Returns:
            The transition that was persisted

        Raises:
            FeedSyncError: If the remote write fails
        """
        require_id(user_id, "user_id", "vote_post")
        require_id(post_id, "post_id", "vote_post")

        current = self.current_vote(user_id, post_id)
        self.votes.sync(user_id, post_id, current.value or None)
        result = self.votes.apply(user_id, post_id, action)

        async def mutate(variables: dict[str, Any]) -> int | None:
            if result.write is VoteWrite.DELETE:
                await self.store.delete(
                    Tables.VOTES_POSTS,
                    [eq("user_id", variables["user_id"]), eq("post_id", variables["post_id"])],
                )
                return None
            await self.store.rpc(
                Procedures.HANDLE_POST_VOTE,
                {
                    "p_user_id": variables["user_id"],
                    "p_post_id": variables["post_id"],
                    "p_vote_type": variables["vote_type"],
                },
            )
            return variables["vote_type"]

        def optimistic(variables: dict[str, Any]) -> list[OptimisticPatch]:
            previous = result.previous.value or None
            return [
                OptimisticPatch(
                    user_votes_key(user_id),
                    SetMappingItem(post_id, result.vote_type, previous=previous),
                ),
                OptimisticPatch((QueryKeys.POSTS,), AdjustListItem(post_id, "score", result.score_delta)),
            ]

        mutation = Mutation(
            MutationType.VOTE_POST,
            mutate,
            optimistic=optimistic,
            entity_key=lambda variables: (variables["user_id"], variables["post_id"]),
        )
        variables = {"user_id": user_id, "post_id": post_id, "vote_type": result.vote_type}
        try:
            await self.executor.execute(mutation, variables)
        except FeedSyncError:
            self.votes.revert(user_id, post_id, result)
            raise
        return result


__all__ = ["PostsService"]
