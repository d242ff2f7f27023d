"""Comments on a post and comment voting."""

from __future__ import annotations

import logging
from typing import Any

from feedsync.config.models.feed_settings import FeedSettings
from feedsync.features.base import FeatureService, require_content, require_id
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import comment_votes_key, comments_key
from feedsync.services.mutation_executor import Mutation, MutationExecutor
from feedsync.services.optimistic import AdjustListItem, OptimisticPatch, SetMappingItem
from feedsync.services.query_cache import QueryCache, QueryDefinition
from feedsync.services.remote.filters import eq, in_
from feedsync.services.remote.protocol import RemoteStore
from feedsync.services.state_machine import (
    VoteAction,
    VoteState,
    VoteStateMachine,
    VoteTransition,
    VoteWrite,
)
from feedsync.shared.constants.feed import ContentLimits
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import FeedSyncError
from feedsync.shared.models.posts import Comment

logger = logging.getLogger(__name__)


class CommentsService(FeatureService):
    """Comment reads and writes for one post at a time."""

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

    async def _with_authors(self, rows: list[dict[str, Any]]) -> list[Comment]:
        authors = await self._users_by_id(row["user_id"] for row in rows)
        return [
            Comment.model_validate(
                {**row, "author_nickname": self._display_name(authors, row["user_id"])},
            )
            for row in rows
        ]

    def comments_query(self, post_id: str | None) -> QueryDefinition:
        """Comments of a post, oldest first, with author display names."""

        async def fetch() -> list[Comment]:
            rows = await self.store.select(
                Tables.COMMENTS,
                [eq("post_id", post_id)],
                order_by="created_at",
            )
            return await self._with_authors(rows)

        return QueryDefinition(comments_key(post_id), fetch, self._options(enabled=bool(post_id)))

    def comment_votes_query(self, post_id: str | None, user_id: str | None) -> QueryDefinition:
        """Map of comment id to the user's vote type, for one post."""

        async def fetch() -> dict[str, int]:
            comments = await self.store.select(Tables.COMMENTS, [eq("post_id", post_id)])
            comment_ids = [row["id"] for row in comments]
            if not comment_ids:
                return {}
            rows = await self.store.select(
                Tables.VOTES_COMMENTS,
                [eq("user_id", user_id), in_("comment_id", comment_ids)],
            )
            return {row["comment_id"]: row["vote_type"] for row in rows}

        return QueryDefinition(
            comment_votes_key(post_id, user_id),
            fetch,
            self._options(enabled=bool(post_id) and bool(user_id)),
        )

    async def create_comment(self, post_id: str, user_id: str, content: str) -> Comment:
        text = require_content(
            content,
            max_length=ContentLimits.COMMENT_MAX_LENGTH,
            field="comment",
            operation="create_comment",
        )
        require_id(post_id, "post_id", "create_comment")
        require_id(user_id, "user_id", "create_comment")

        async def mutate(variables: dict[str, Any]) -> Comment:
            row = await self.store.insert(
                Tables.COMMENTS,
                {
                    "post_id": variables["post_id"],
                    "user_id": variables["user_id"],
                    "content": variables["content"],
                },
            )
            return (await self._with_authors([row]))[0]

        mutation = Mutation(MutationType.CREATE_COMMENT, mutate)
        return await self.executor.execute(
            mutation,
            {"post_id": post_id, "user_id": user_id, "content": text},
        )

    def current_vote(self, user_id: str, comment_id: str, post_id: str) -> VoteState:
        votes = self.cache.get_query_data(comment_votes_key(post_id, user_id))
        if votes is not None:
            return VoteState.from_vote_type(votes.get(comment_id))
        return self.votes.state(user_id, comment_id)

    async def vote_comment(
        self,
        user_id: str,
        comment_id: str,
        post_id: str,
        action: VoteAction,
    ) -> VoteTransition:
        """Toggle the user's vote on a comment.

        The vote row is upserted on ``(user_id, comment_id)`` or deleted,
        then the comment's score is recomputed from all of its votes.
        """
        require_id(user_id, "user_id", "vote_comment")
        require_id(comment_id, "comment_id", "vote_comment")
        require_id(post_id, "post_id", "vote_comment")

        current = self.current_vote(user_id, comment_id, post_id)
        self.votes.sync(user_id, comment_id, current.value or None)
        result = self.votes.apply(user_id, comment_id, action)

        async def mutate(variables: dict[str, Any]) -> int:
            vote_filters = [eq("user_id", variables["user_id"]), eq("comment_id", variables["comment_id"])]
            if result.write is VoteWrite.DELETE:
                await self.store.delete(Tables.VOTES_COMMENTS, vote_filters)
            else:
                await self.store.upsert(
                    Tables.VOTES_COMMENTS,
                    {
                        "user_id": variables["user_id"],
                        "comment_id": variables["comment_id"],
                        "vote_type": variables["vote_type"],
                    },
                    on_conflict=("user_id", "comment_id"),
                )

            votes = await self.store.select(Tables.VOTES_COMMENTS, [eq("comment_id", variables["comment_id"])])
            score = sum(vote["vote_type"] for vote in votes)
            await self.store.update(Tables.COMMENTS, {"score": score}, [eq("id", variables["comment_id"])])
            return score

        def optimistic(variables: dict[str, Any]) -> list[OptimisticPatch]:
            return [
                OptimisticPatch(
                    comment_votes_key(post_id, user_id),
                    SetMappingItem(comment_id, result.vote_type, previous=result.previous.value or None),
                ),
                OptimisticPatch(comments_key(post_id), AdjustListItem(comment_id, "score", result.score_delta)),
            ]

        mutation = Mutation(
            MutationType.VOTE_COMMENT,
            mutate,
            optimistic=optimistic,
            entity_key=lambda variables: (variables["user_id"], variables["comment_id"]),
        )
        variables = {
            "user_id": user_id,
            "comment_id": comment_id,
            "post_id": post_id,
            "vote_type": result.vote_type,
        }
        try:
            score = await self.executor.execute(mutation, variables)
        except FeedSyncError:
            self.votes.revert(user_id, comment_id, result)
            raise
        self.votes.sync(user_id, comment_id, result.vote_type, score=score)
        return result

    async def delete_comment(self, comment_id: str, post_id: str) -> None:
        require_id(comment_id, "comment_id", "delete_comment")

        async def mutate(variables: dict[str, Any]) -> None:
            await self.store.delete(Tables.COMMENTS, [eq("id", variables["comment_id"])])

        mutation = Mutation(MutationType.DELETE_COMMENT, mutate)
        await self.executor.execute(mutation, {"comment_id": comment_id, "post_id": post_id})


__all__ = ["CommentsService"]
