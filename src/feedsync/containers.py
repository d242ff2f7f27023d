"""Dependency Injection container for feedsync.

This module provides a centralized DI container using dependency-injector
so that each client session owns exactly one query cache, event bus,
invalidation router and mutation executor.

The container manages:
- Settings (Singleton)
- Remote store (Singleton, in-memory by default; override for a real backend)
- Query cache, event bus, invalidation router, mutation executor (Singletons)
- Vote state machine (Singleton, shared by posts and comments)
- Feature services (Factories)
"""

from __future__ import annotations

from dependency_injector import containers, providers

from feedsync.config.loader import load_settings
from feedsync.features import (
    ChatsService,
    CommentsService,
    FollowsService,
    NotificationsService,
    PostsService,
    ProfileService,
    RealtimeBridge,
    UsersService,
)
from feedsync.services import (
    EventBus,
    InvalidationRouter,
    MutationExecutor,
    QueryCache,
    VoteStateMachine,
)
from feedsync.services.remote import InMemoryRemoteStore


class Container(containers.DeclarativeContainer):
    """Dependency Injection container for feedsync services.

    Example:
        >>> container = Container()
        >>> container.remote_store.override(providers.Object(my_store))
        >>> posts = container.posts_service()
        >>> feed = await posts.get_posts(35.70, 139.71)
    """

    # Configuration
    config = providers.Singleton(load_settings)

    cache_settings = providers.Callable(lambda config: config.cache, config=config)
    feed_settings = providers.Callable(lambda config: config.feed, config=config)

    # Remote store
    remote_store = providers.Singleton(InMemoryRemoteStore)

    # Synchronization layer
    query_cache = providers.Singleton(QueryCache, settings=cache_settings)

    event_bus = providers.Singleton(EventBus)

    invalidation_router = providers.Singleton(InvalidationRouter, cache=query_cache)

    mutation_executor = providers.Singleton(
        MutationExecutor,
        cache=query_cache,
        router=invalidation_router,
    )

    vote_state_machine = providers.Singleton(VoteStateMachine)

    realtime_bridge = providers.Singleton(RealtimeBridge, store=remote_store, bus=event_bus)

    # Feature services
    posts_service = providers.Factory(
        PostsService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
        votes=vote_state_machine,
    )

    comments_service = providers.Factory(
        CommentsService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
        votes=vote_state_machine,
    )

    follows_service = providers.Factory(
        FollowsService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
    )

    chats_service = providers.Factory(
        ChatsService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
    )

    notifications_service = providers.Factory(
        NotificationsService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
    )

    profile_service = providers.Factory(
        ProfileService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
    )

    users_service = providers.Factory(
        UsersService,
        store=remote_store,
        cache=query_cache,
        executor=mutation_executor,
        settings=feed_settings,
    )


def start_realtime(container: Container) -> InvalidationRouter:
    """Subscribe the container's router to its event bus.

    Must be called from within a running event loop.
    """
    router = container.invalidation_router()
    router.attach(container.event_bus())
    return router


async def shutdown(container: Container) -> None:
    """Close realtime channels, detach the router and stop the bus."""
    container.realtime_bridge().close()
    container.invalidation_router().detach()
    await container.event_bus().close()
    await container.query_cache().wait_idle()


__all__ = ["Container", "shutdown", "start_realtime"]
