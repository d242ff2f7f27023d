"""Tests for the location feed, post creation and post voting."""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAMPUS

from feedsync.features.posts import PostsService
from feedsync.services.keys import posts_key, user_votes_key
from feedsync.services.query_cache import QueryCache
from feedsync.services.remote.memory_store import InMemoryRemoteStore
from feedsync.services.state_machine import VoteAction, VoteState, VoteWrite
from feedsync.shared.constants.query_keys import Procedures, Tables
from feedsync.shared.errors import DomainError, ErrorCode, FeedSyncError

FEED_KEY = posts_key(CAMPUS[0], CAMPUS[1], 5000, "new", "week")


@pytest.fixture
def post_id(store: InMemoryRemoteStore) -> str:
    (row,) = store.seed(
        Tables.POSTS,
        [{"user_id": BOB, "content": "Library is open late", "latitude": CAMPUS[0], "longitude": CAMPUS[1]}],
    )
    return row["id"]


async def _load(posts_service: PostsService) -> None:
    await posts_service.get_posts(*CAMPUS)
    await posts_service.cache.get(posts_service.user_votes_query(ALICE))


class TestFeed:
    @pytest.mark.asyncio
    async def test_feed_lists_nearby_posts_with_author(self, posts_service: PostsService, post_id: str) -> None:
        posts = await posts_service.get_posts(*CAMPUS)

        assert [post.id for post in posts] == [post_id]
        assert posts[0].author_nickname == "Bob"
        assert posts[0].distance_meters == 0.0

    @pytest.mark.asyncio
    async def test_feed_key_uses_configured_defaults(self, posts_service: PostsService) -> None:
        assert posts_service.posts_query(*CAMPUS).key == FEED_KEY

    @pytest.mark.asyncio
    async def test_feed_is_disabled_without_location(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
    ) -> None:
        assert await posts_service.get_posts(None, None) == []
        assert store.calls_to("rpc") == 0

    def test_unknown_sort_is_rejected(self, posts_service: PostsService) -> None:
        with pytest.raises(DomainError) as exc_info:
            posts_service.posts_query(*CAMPUS, sort_by="hot")

        assert exc_info.value.code == ErrorCode.INVALID_FEED_FILTER


class TestCreatePost:
    @pytest.mark.asyncio
    async def test_create_post_invalidates_every_feed(
        self,
        posts_service: PostsService,
        cache: QueryCache,
    ) -> None:
        await posts_service.get_posts(*CAMPUS)

        post = await posts_service.create_post(ALICE, "  Free coffee at the union  ", *CAMPUS)

        assert post.content == "Free coffee at the union"
        assert cache.get_state(FEED_KEY).is_invalidated

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("content", "code"),
        [("   ", ErrorCode.EMPTY_CONTENT), ("x" * 501, ErrorCode.CONTENT_TOO_LONG)],
    )
    async def test_invalid_content_never_reaches_store(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
        content: str,
        code: ErrorCode,
    ) -> None:
        with pytest.raises(DomainError) as exc_info:
            await posts_service.create_post(ALICE, content, *CAMPUS)

        assert exc_info.value.code == code
        assert store.calls_to("insert", Tables.POSTS) == 0


class TestVotePost:
    @pytest.mark.asyncio
    async def test_upvote_patches_cache_and_persists(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
        cache: QueryCache,
        post_id: str,
    ) -> None:
        await _load(posts_service)

        result = await posts_service.vote_post(ALICE, post_id, VoteAction.UPVOTE)

        assert result.current is VoteState.UPVOTED
        assert cache.get_query_data(user_votes_key(ALICE)) == {post_id: 1}
        assert cache.get_query_data(FEED_KEY)[0].score == 1
        assert store.rows(Tables.POSTS)[0]["score"] == 1

    @pytest.mark.asyncio
    async def test_repeating_vote_clears_it(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
        post_id: str,
    ) -> None:
        await _load(posts_service)
        await posts_service.vote_post(ALICE, post_id, VoteAction.UPVOTE)

        result = await posts_service.vote_post(ALICE, post_id, VoteAction.UPVOTE)

        assert result.write is VoteWrite.DELETE
        assert store.rows(Tables.VOTES_POSTS) == []
        assert store.rows(Tables.POSTS)[0]["score"] == 0

    @pytest.mark.asyncio
    async def test_switching_vote_moves_score_by_two(
        self,
        posts_service: PostsService,
        cache: QueryCache,
        post_id: str,
    ) -> None:
        await _load(posts_service)
        await posts_service.vote_post(ALICE, post_id, VoteAction.UPVOTE)

        result = await posts_service.vote_post(ALICE, post_id, VoteAction.DOWNVOTE)

        assert result.score_delta == -2
        assert cache.get_query_data(user_votes_key(ALICE)) == {post_id: -1}
        assert cache.get_query_data(FEED_KEY)[0].score == -1

    @pytest.mark.asyncio
    async def test_failed_vote_restores_cache_and_state(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
        cache: QueryCache,
        post_id: str,
    ) -> None:
        await _load(posts_service)
        store.fail_next("rpc", Procedures.HANDLE_POST_VOTE)

        with pytest.raises(FeedSyncError):
            await posts_service.vote_post(ALICE, post_id, VoteAction.UPVOTE)

        assert cache.get_query_data(user_votes_key(ALICE)) == {}
        assert cache.get_query_data(FEED_KEY)[0].score == 0
        assert posts_service.votes.state(ALICE, post_id) is VoteState.UNVOTED
        assert store.rows(Tables.VOTES_POSTS) == []

    @pytest.mark.asyncio
    async def test_vote_without_cached_map_uses_tracked_state(
        self,
        posts_service: PostsService,
        store: InMemoryRemoteStore,
        post_id: str,
    ) -> None:
        await posts_service.vote_post(ALICE, post_id, VoteAction.DOWNVOTE)

        assert store.rows(Tables.VOTES_POSTS)[0]["vote_type"] == -1
        assert posts_service.current_vote(ALICE, post_id) is VoteState.DOWNVOTED
