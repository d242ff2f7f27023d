"""Remote store contract, filter predicates and the in-memory store."""

from feedsync.services.remote.filters import (
    AnyOf,
    Filter,
    FilterOp,
    Predicate,
    any_of,
    eq,
    ilike,
    in_,
    is_,
    match_all,
    neq,
)
from feedsync.services.remote.memory_store import InMemoryRemoteStore, haversine_meters
from feedsync.services.remote.protocol import (
    ChannelHandle,
    RealtimeCallback,
    RemoteStore,
    Row,
    is_no_rows,
    is_unique_violation,
)

__all__ = [
    "AnyOf",
    "ChannelHandle",
    "Filter",
    "FilterOp",
    "InMemoryRemoteStore",
    "Predicate",
    "RealtimeCallback",
    "RemoteStore",
    "Row",
    "any_of",
    "eq",
    "haversine_meters",
    "ilike",
    "in_",
    "is_",
    "is_no_rows",
    "is_unique_violation",
    "match_all",
    "neq",
]
