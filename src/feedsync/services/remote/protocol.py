"""Contract between the synchronization layer and a remote data store.

The store offers row CRUD with filter predicates, count-only queries,
upsert with conflict resolution, named stored procedures and realtime
insert subscriptions. Failures are raised as ``RemoteStoreError`` carrying
the store's own error code.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, Union, runtime_checkable

from feedsync.services.remote.filters import Predicate
from feedsync.shared.constants.query_keys import RemoteErrorCodes
from feedsync.shared.errors import RemoteStoreError

Row = dict[str, Any]
RealtimeCallback = Callable[[Mapping[str, Any]], Union[Awaitable[None], None]]

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class ChannelHandle:
    """A live realtime subscription; pass it back to ``unsubscribe``."""

    channel_name: str
    table: str
    callback: RealtimeCallback = field(compare=False)
    filters: tuple[Predicate, ...] = ()
    handle_id: int = field(default_factory=lambda: next(_handle_ids))


@runtime_checkable
class RemoteStore(Protocol):
    """Async remote data store."""

    async def select(
        self,
        table: str,
        filters: Sequence[Predicate] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    async def select_one(self, table: str, filters: Sequence[Predicate] = ()) -> Row: ...

    async def count(self, table: str, filters: Sequence[Predicate] = ()) -> int: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Sequence[Predicate],
    ) -> list[Row]: ...

    async def delete(self, table: str, filters: Sequence[Predicate]) -> list[Row]: ...

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        on_conflict: Sequence[str],
    ) -> Row: ...

    async def rpc(self, name: str, params: Mapping[str, Any]) -> Any: ...

    def subscribe(
        self,
        channel_name: str,
        table: str,
        callback: RealtimeCallback,
        filters: Sequence[Predicate] = (),
    ) -> ChannelHandle: ...

    def unsubscribe(self, handle: ChannelHandle) -> None: ...


def is_unique_violation(error: BaseException) -> bool:
    """True for a unique-constraint violation (a concurrent writer won)."""
    return isinstance(error, RemoteStoreError) and error.remote_code == RemoteErrorCodes.UNIQUE_VIOLATION


def is_no_rows(error: BaseException) -> bool:
    """True when a single-row read matched nothing."""
    return isinstance(error, RemoteStoreError) and error.remote_code == RemoteErrorCodes.NO_ROWS


__all__ = [
    "ChannelHandle",
    "RealtimeCallback",
    "RemoteStore",
    "Row",
    "is_no_rows",
    "is_unique_violation",
]
