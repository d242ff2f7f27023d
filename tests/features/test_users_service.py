"""Tests for user search and lookup."""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CAROL

from feedsync.features.users import UsersService
from feedsync.services.query_cache import QueryCache
from feedsync.services.remote.memory_store import InMemoryRemoteStore
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.errors import QueryError


@pytest.mark.asyncio
async def test_partial_username_match_ignores_case(users_service: UsersService) -> None:
    results = await users_service.search("BOB", ALICE)

    assert [user.id for user in results] == [BOB]


@pytest.mark.asyncio
async def test_search_never_returns_current_user(users_service: UsersService) -> None:
    results = await users_service.search("a", BOB)
    assert results == []

    results = await users_service.search("al", ALICE)
    assert results == []


@pytest.mark.asyncio
async def test_underscore_is_matched_literally(users_service: UsersService, store: InMemoryRemoteStore) -> None:
    store.seed(Tables.USERS, [{"id": "u-x", "username": "bobak"}])

    results = await users_service.search("b_k", ALICE)

    assert [user.username for user in results] == ["bob_k"]


@pytest.mark.asyncio
async def test_uuid_term_matches_exact_user(users_service: UsersService) -> None:
    results = await users_service.search(f"  {CAROL} ", ALICE)

    assert [user.id for user in results] == [CAROL]
    assert results[0].display_name == "Anonymous"


@pytest.mark.asyncio
async def test_uuid_of_current_user_finds_nothing(users_service: UsersService) -> None:
    assert await users_service.search(ALICE, ALICE) == []


@pytest.mark.asyncio
async def test_short_term_is_disabled(users_service: UsersService, store: InMemoryRemoteStore) -> None:
    assert await users_service.search(" b ", ALICE) == []
    assert store.calls == []


@pytest.mark.asyncio
async def test_user_by_id(users_service: UsersService, cache: QueryCache) -> None:
    user = await cache.get(users_service.user_by_id_query(BOB))

    assert user.nickname == "Bob"


@pytest.mark.asyncio
async def test_unknown_user_by_id_fails_after_retries(users_service: UsersService, cache: QueryCache) -> None:
    with pytest.raises(QueryError):
        await cache.get(users_service.user_by_id_query("missing"))
