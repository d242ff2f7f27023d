"""Synchronization services: query cache, mutations, invalidation and votes."""

from feedsync.services.event_bus import EventBus, RealtimeEvent, RealtimeEventType
from feedsync.services.invalidation_router import InvalidationRouter, MutationType
from feedsync.services.mutation_executor import ErrorPolicy, Mutation, MutationExecutor
from feedsync.services.query_cache import QueryCache, QueryDefinition, QueryOptions
from feedsync.services.state_machine import VoteAction, VoteState, VoteStateMachine

__all__ = [
    "ErrorPolicy",
    "EventBus",
    "InvalidationRouter",
    "Mutation",
    "MutationExecutor",
    "MutationType",
    "QueryCache",
    "QueryDefinition",
    "QueryOptions",
    "RealtimeEvent",
    "RealtimeEventType",
    "VoteAction",
    "VoteState",
    "VoteStateMachine",
]
