"""
Pytest configuration and shared fixtures for feedsync tests.

The fixtures wire one query cache, invalidation router and mutation
executor around an in-memory remote store, with a manual clock so stale
and eviction windows can be crossed without sleeping.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
import tempfile

import pytest

from feedsync.cli.common.context import clear_cli_context
from feedsync.config.models.cache_settings import CacheSettings
from feedsync.config.models.feed_settings import FeedSettings
from feedsync.features import (
    ChatsService,
    CommentsService,
    FollowsService,
    NotificationsService,
    PostsService,
    ProfileService,
    UsersService,
)
from feedsync.services.invalidation_router import InvalidationRouter
from feedsync.services.mutation_executor import MutationExecutor
from feedsync.services.query_cache import QueryCache
from feedsync.services.remote.memory_store import InMemoryRemoteStore
from feedsync.services.state_machine import VoteStateMachine
from feedsync.shared.constants.query_keys import Tables

ALICE = "0a3c1d5e-7f21-4b8a-9c6d-2e4f6a8b0c11"
BOB = "5b7d9f1a-3c5e-4d7f-8a1b-9c2d4e6f8a22"
CAROL = "9e8d7c6b-5a49-4382-b716-a5f4e3d2c133"

# Waseda main campus
CAMPUS = (35.7087, 139.7196)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC wall clock for the remote store, advanced by hand."""

    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(stale_time=60, gc_time=300, retry=1, retry_delay=0.01)


@pytest.fixture
def feed_settings() -> FeedSettings:
    return FeedSettings()


@pytest.fixture
def cache(cache_settings: CacheSettings, clock: FakeClock) -> QueryCache:
    return QueryCache(cache_settings, clock=clock, sleep=no_sleep)


@pytest.fixture
def router(cache: QueryCache) -> InvalidationRouter:
    return InvalidationRouter(cache)


@pytest.fixture
def executor(cache: QueryCache, router: InvalidationRouter) -> MutationExecutor:
    return MutationExecutor(cache, router)


@pytest.fixture
def votes() -> VoteStateMachine:
    return VoteStateMachine()


@pytest.fixture
def store(wall_clock: FakeWallClock) -> InMemoryRemoteStore:
    """In-memory store seeded with three users."""
    remote = InMemoryRemoteStore(clock=wall_clock)
    remote.seed(
        Tables.USERS,
        [
            {
                "id": ALICE,
                "username": "alice",
                "nickname": "Alice",
                "email": "alice@waseda.jp",
                "school_id": "waseda",
                "onboarding_completed": True,
            },
            {
                "id": BOB,
                "username": "bob_k",
                "nickname": "Bob",
                "email": "bob@waseda.jp",
                "school_id": "waseda",
                "onboarding_completed": True,
            },
            {
                "id": CAROL,
                "username": "carol",
                "nickname": "Carol",
                "is_anonymous": True,
                "onboarding_completed": True,
            },
        ],
    )
    return remote


@pytest.fixture(autouse=True)
def _reset_cli_context() -> Generator[None, None, None]:
    yield
    clear_cli_context()


# ---------------------------------------------------------------- features


@pytest.fixture
def posts_service(store, cache, executor, feed_settings, votes) -> PostsService:
    return PostsService(store, cache, executor, feed_settings, votes)


@pytest.fixture
def comments_service(store, cache, executor, feed_settings, votes) -> CommentsService:
    return CommentsService(store, cache, executor, feed_settings, votes)


@pytest.fixture
def follows_service(store, cache, executor, feed_settings) -> FollowsService:
    return FollowsService(store, cache, executor, feed_settings)


@pytest.fixture
def chats_service(store, cache, executor, feed_settings) -> ChatsService:
    return ChatsService(store, cache, executor, feed_settings)


@pytest.fixture
def notifications_service(store, cache, executor, feed_settings) -> NotificationsService:
    return NotificationsService(store, cache, executor, feed_settings)


@pytest.fixture
def profile_service(store, cache, executor, feed_settings) -> ProfileService:
    return ProfileService(store, cache, executor, feed_settings)


@pytest.fixture
def users_service(store, cache, executor, feed_settings) -> UsersService:
    return UsersService(store, cache, executor, feed_settings)


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory so no config file or .env is picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in list(os.environ):
        if name.startswith("FEEDSYNC_"):
            monkeypatch.delenv(name)
    return tmp_path


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Generator[None, None, None]:
    """Undo handlers installed by the CLI callback."""
    logger = logging.getLogger("feedsync")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
