"""Tests for comments and comment voting."""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL

from feedsync.features.comments import CommentsService
from feedsync.services.keys import comment_votes_key, comments_key, posts_key
from feedsync.services.query_cache import QueryCache
from feedsync.services.remote.filters import eq
from feedsync.services.remote.memory_store import InMemoryRemoteStore
from feedsync.services.state_machine import VoteAction, VoteState
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import DomainError, ErrorCode, FeedSyncError


@pytest.fixture
def post_id(store: InMemoryRemoteStore) -> str:
    (row,) = store.seed(Tables.POSTS, [{"user_id": BOB, "content": "Exam tips?"}])
    return row["id"]


@pytest.fixture
def comment_id(store: InMemoryRemoteStore, post_id: str) -> str:
    (row,) = store.seed(Tables.COMMENTS, [{"post_id": post_id, "user_id": CAROL, "content": "Sleep early"}])
    return row["id"]


@pytest.mark.asyncio
async def test_comments_are_oldest_first_with_display_names(
    comments_service: CommentsService,
    store: InMemoryRemoteStore,
    wall_clock,
    post_id: str,
    comment_id: str,
) -> None:
    wall_clock.advance(minutes=5)
    store.seed(Tables.COMMENTS, [{"post_id": post_id, "user_id": ALICE, "content": "Flashcards"}])

    comments = await comments_service.cache.get(comments_service.comments_query(post_id))

    assert [c.content for c in comments] == ["Sleep early", "Flashcards"]
    assert [c.author_nickname for c in comments] == ["Anonymous", "Alice"]


@pytest.mark.asyncio
async def test_create_comment_invalidates_comments_and_feeds(
    comments_service: CommentsService,
    store: InMemoryRemoteStore,
    cache: QueryCache,
    post_id: str,
) -> None:
    await cache.get(comments_service.comments_query(post_id))
    cache.set_query_data(posts_key(35.7, 139.7, 5000, "new", "week"), [])

    comment = await comments_service.create_comment(post_id, ALICE, " Good luck ")

    assert comment.content == "Good luck"
    assert comment.author_nickname == "Alice"
    assert cache.get_state(comments_key(post_id)).is_invalidated
    assert cache.get_state(posts_key(35.7, 139.7, 5000, "new", "week")).is_invalidated
    assert (await store.select_one(Tables.POSTS, [eq("id", post_id)]))["comment_count"] == 1


@pytest.mark.asyncio
async def test_empty_comment_is_rejected(comments_service: CommentsService, post_id: str) -> None:
    with pytest.raises(DomainError) as exc_info:
        await comments_service.create_comment(post_id, ALICE, "")

    assert exc_info.value.code == ErrorCode.EMPTY_CONTENT


class TestVoteComment:
    @pytest.mark.asyncio
    async def test_vote_recomputes_score_from_all_votes(
        self,
        comments_service: CommentsService,
        store: InMemoryRemoteStore,
        post_id: str,
        comment_id: str,
    ) -> None:
        store.seed(Tables.VOTES_COMMENTS, [{"user_id": BOB, "comment_id": comment_id, "vote_type": 1}])

        await comments_service.vote_comment(ALICE, comment_id, post_id, VoteAction.UPVOTE)

        assert store.rows(Tables.COMMENTS)[0]["score"] == 2
        assert comments_service.votes.display_score(ALICE, comment_id) == 2

    @pytest.mark.asyncio
    async def test_vote_patches_cached_map_and_list(
        self,
        comments_service: CommentsService,
        cache: QueryCache,
        post_id: str,
        comment_id: str,
    ) -> None:
        await cache.get(comments_service.comments_query(post_id))
        await cache.get(comments_service.comment_votes_query(post_id, ALICE))

        await comments_service.vote_comment(ALICE, comment_id, post_id, VoteAction.DOWNVOTE)

        assert cache.get_query_data(comment_votes_key(post_id, ALICE)) == {comment_id: -1}
        assert cache.get_query_data(comments_key(post_id))[0].score == -1

    @pytest.mark.asyncio
    async def test_toggle_off_deletes_vote(
        self,
        comments_service: CommentsService,
        store: InMemoryRemoteStore,
        cache: QueryCache,
        post_id: str,
        comment_id: str,
    ) -> None:
        store.seed(Tables.VOTES_COMMENTS, [{"user_id": ALICE, "comment_id": comment_id, "vote_type": 1}])
        await cache.get(comments_service.comment_votes_query(post_id, ALICE))

        await comments_service.vote_comment(ALICE, comment_id, post_id, VoteAction.UPVOTE)

        assert store.rows(Tables.VOTES_COMMENTS) == []
        assert comments_service.votes.state(ALICE, comment_id) is VoteState.UNVOTED

    @pytest.mark.asyncio
    async def test_failed_vote_is_rolled_back(
        self,
        comments_service: CommentsService,
        store: InMemoryRemoteStore,
        cache: QueryCache,
        post_id: str,
        comment_id: str,
    ) -> None:
        await cache.get(comments_service.comment_votes_query(post_id, ALICE))
        store.fail_next("upsert", Tables.VOTES_COMMENTS)

        with pytest.raises(FeedSyncError):
            await comments_service.vote_comment(ALICE, comment_id, post_id, VoteAction.UPVOTE)

        assert cache.get_query_data(comment_votes_key(post_id, ALICE)) == {}
        assert comments_service.votes.state(ALICE, comment_id) is VoteState.UNVOTED


@pytest.mark.asyncio
async def test_delete_comment_drops_its_votes(
    comments_service: CommentsService,
    store: InMemoryRemoteStore,
    post_id: str,
    comment_id: str,
) -> None:
    store.seed(Tables.VOTES_COMMENTS, [{"user_id": ALICE, "comment_id": comment_id, "vote_type": -1}])

    await comments_service.delete_comment(comment_id, post_id)

    assert store.rows(Tables.COMMENTS) == []
    assert store.rows(Tables.VOTES_COMMENTS) == []
    assert store.rows(Tables.POSTS)[0]["comment_count"] == 0
