"""Query cache with stale-while-revalidate semantics.

The cache memoizes async reads by query key. Fresh data is served from
memory, stale data is served immediately while one background refetch runs,
and evicted or missing data is fetched while the caller waits. Concurrent
readers of the same key share one in-flight request.

Every fetch dispatched for a key takes a sequence number. A result is only
applied when its sequence is newer than the one currently applied, so a
slow early fetch can never overwrite data from a later fetch or a local
``set_query_data`` write.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from feedsync.config.models.cache_settings import CacheSettings
from feedsync.services.keys import QueryKey, matches, normalize_key
from feedsync.shared.constants.cache import QueryCacheConfig
from feedsync.shared.constants.logging import LogOperationNames
from feedsync.shared.errors import ErrorCode, ErrorContext, QueryError
from feedsync.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[["QueryState"], None]
Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class QueryStatus(str, Enum):
    """Lifecycle status of a cached query."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryOptions:
    """Per-query overrides. ``None`` falls back to the cache defaults."""

    stale_time: float | None = None
    gc_time: float | None = None
    retry: int | None = None
    retry_delay: float | None = None
    enabled: bool = True


@dataclass(frozen=True)
class QueryDefinition:
    """A key, the coroutine that loads it, and its options."""

    key: QueryKey
    fetcher: Fetcher
    options: QueryOptions = field(default_factory=QueryOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", normalize_key(self.key))


@dataclass(frozen=True)
class QueryState:
    """Immutable snapshot of one cache entry."""

    key: QueryKey
    data: Any
    has_data: bool
    status: QueryStatus
    error: QueryError | None
    data_updated_at: float | None
    data_version: int
    is_stale: bool
    is_fetching: bool
    is_invalidated: bool
    failure_count: int


@dataclass
class _CacheEntry:
    key: QueryKey
    fetcher: Fetcher | None = None
    options: QueryOptions = field(default_factory=QueryOptions)
    data: Any = None
    has_data: bool = False
    data_updated_at: float | None = None
    data_version: int = 0
    invalidated: bool = False
    error: QueryError | None = None
    failure_count: int = 0
    dispatch_seq: int = 0
    applied_seq: int = 0
    in_flight: asyncio.Task[None] | None = None
    observers: list[QueryObserver] = field(default_factory=list)
    last_used_at: float = 0.0

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()


class QueryObserver:
    """A mounted consumer of one query key.

    Listeners receive a ``QueryState`` snapshot whenever the entry changes.
    After ``unsubscribe`` no further snapshots are delivered, but a fetch
    already in flight still completes and populates the cache.
    """

    def __init__(self, cache: QueryCache, key: QueryKey, listener: Listener | None) -> None:
        self._cache = cache
        self.key = key
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def state(self) -> QueryState | None:
        return self._cache.get_state(self.key)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._cache._detach(self)

    def _deliver(self, state: QueryState) -> None:
        if not self._active or self._listener is None:
            return
        try:
            self._listener(state)
        except Exception:
            logger.exception("Query listener failed for key %s", self.key)


class QueryCache:
    """Process-wide, explicitly injected store of query results.

    Args:
        settings: Default stale/eviction windows and retry policy
        clock: Monotonic time source, injectable for tests
        sleep: Coroutine used for retry backoff, injectable for tests
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        *,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        self.settings = settings or CacheSettings()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._entries: dict[QueryKey, _CacheEntry] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------ reads

    async def get(
        self,
        query: QueryDefinition | QueryKey | list[Any],
        fetcher: Fetcher | None = None,
        options: QueryOptions | None = None,
    ) -> Any:
        """Return data for a query, fetching when needed.

        Fresh data is returned as is. Stale data is returned immediately and
        one background refetch is scheduled. Missing or evicted data is
        fetched while the caller waits; concurrent callers share the fetch.
        A disabled query returns cached data or ``None`` without fetching.

        Raises:
            QueryError: If the fetch exhausted its retries and there is no
                data to fall back to
        """
        definition = self._as_definition(query, fetcher, options)
        now = self._clock()

        entry = self._entries.get(definition.key)
        if entry is not None and self._is_expired(entry, now):
            logger.debug("Evicting expired entry %s", entry.key)
            del self._entries[entry.key]
            entry = None

        if entry is None:
            entry = _CacheEntry(key=definition.key, last_used_at=now)
            self._entries[definition.key] = entry

        entry.fetcher = definition.fetcher
        entry.options = definition.options
        entry.last_used_at = now

        if not definition.options.enabled:
            return entry.data if entry.has_data else None

        if entry.has_data:
            if self._is_stale(entry, now):
                logger.debug("Serving stale data for %s, refetching in background", entry.key)
                self._dispatch(entry)
            else:
                logger.debug("Cache hit for %s", entry.key)
            return entry.data

        logger.debug("Cache miss for %s", entry.key)
        return await self._await_data(entry)

    def get_state(self, key: QueryKey | list[Any]) -> QueryState | None:
        entry = self._entries.get(normalize_key(key))
        if entry is None:
            return None
        return self._snapshot(entry)

    def get_query_data(self, key: QueryKey | list[Any]) -> Any:
        entry = self._entries.get(normalize_key(key))
        if entry is None or not entry.has_data:
            return None
        return entry.data

    def find(self, pattern: QueryKey | list[Any] | None = None) -> list[QueryKey]:
        """List cached keys, optionally restricted to a prefix pattern."""
        if pattern is None:
            return list(self._entries)
        normalized = normalize_key(pattern)
        return [key for key in self._entries if matches(key, normalized)]

    # ----------------------------------------------------------------- writes

    def set_query_data(self, key: QueryKey | list[Any], value: Any) -> Any:
        """Write data for a key locally.

        ``value`` may be a callable receiving the current data (``None`` when
        absent) and returning the new data. The write supersedes every fetch
        dispatched before it.

        Returns:
            The data now stored for the key
        """
        normalized = normalize_key(key)
        now = self._clock()
        entry = self._entries.get(normalized)
        if entry is None:
            entry = _CacheEntry(key=normalized, last_used_at=now)
            self._entries[normalized] = entry

        new_data = value(entry.data if entry.has_data else None) if callable(value) else value
        entry.last_used_at = now
        self._write_data(entry, new_data, now)
        entry.applied_seq = entry.dispatch_seq
        self._notify(entry)
        return new_data

    def invalidate(self, pattern: QueryKey | list[Any]) -> list[QueryKey]:
        """Mark matching entries stale and refetch the observed ones.

        Fire-and-forget: refetch failures are recorded on the entries.

        Returns:
            The keys that matched the pattern
        """
        normalized = normalize_key(pattern)
        matched = [entry for key, entry in self._entries.items() if matches(key, normalized)]

        for entry in matched:
            entry.invalidated = True
            if self._has_active_observers(entry) and entry.options.enabled and entry.fetcher:
                self._dispatch(entry, force=True)
            self._notify(entry)

        logger.debug(
            "Invalidated %d entries for pattern %s",
            len(matched),
            normalized,
            extra={"operation": LogOperationNames.QUERY_INVALIDATE},
        )
        return [entry.key for entry in matched]

    async def refetch(self, key: QueryKey | list[Any]) -> QueryState:
        """Force a fetch for a cached key and wait for it.

        Returns:
            The entry state after the fetch settled

        Raises:
            QueryError: If the key is unknown to the cache
        """
        normalized = normalize_key(key)
        entry = self._entries.get(normalized)
        if entry is None or entry.fetcher is None:
            raise QueryError(
                ErrorCode.INVALID_QUERY_KEY,
                f"No fetcher registered for key {normalized!r}",
                ErrorContext(operation="refetch"),
                key=normalized,
            )

        task = self._dispatch(entry, force=True)
        await asyncio.shield(task)
        return self._snapshot(entry)

    def remove(self, pattern: QueryKey | list[Any]) -> list[QueryKey]:
        """Drop matching entries without refetching."""
        removed = self.find(pattern)
        for key in removed:
            del self._entries[key]
        return removed

    def collect_garbage(self) -> list[QueryKey]:
        """Evict unobserved entries idle for longer than their eviction window."""
        now = self._clock()
        evicted = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in evicted:
            del self._entries[key]
        if evicted:
            logger.debug("Garbage collected %d entries", len(evicted))
        return evicted

    async def wait_idle(self) -> None:
        """Wait until every dispatched fetch has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear(self) -> None:
        self._entries.clear()

    # -------------------------------------------------------------- observers

    def observe(
        self,
        definition: QueryDefinition,
        listener: Listener | None = None,
    ) -> QueryObserver:
        """Mount an observer on a query.

        Mounting fetches when the entry has no data or is stale.
        """
        now = self._clock()
        entry = self._entries.get(definition.key)
        if entry is not None and self._is_expired(entry, now):
            del self._entries[entry.key]
            entry = None
        if entry is None:
            entry = _CacheEntry(key=definition.key, last_used_at=now)
            self._entries[definition.key] = entry

        entry.fetcher = definition.fetcher
        entry.options = definition.options
        entry.last_used_at = now

        observer = QueryObserver(self, definition.key, listener)
        entry.observers.append(observer)

        if definition.options.enabled and (not entry.has_data or self._is_stale(entry, now)):
            self._dispatch(entry)

        return observer

    def _detach(self, observer: QueryObserver) -> None:
        entry = self._entries.get(observer.key)
        if entry is None:
            return
        if observer in entry.observers:
            entry.observers.remove(observer)
        entry.last_used_at = self._clock()

    # ---------------------------------------------------------------- internals

    def _as_definition(
        self,
        query: QueryDefinition | QueryKey | list[Any],
        fetcher: Fetcher | None,
        options: QueryOptions | None,
    ) -> QueryDefinition:
        if isinstance(query, QueryDefinition):
            return query
        if fetcher is None:
            raise QueryError(
                ErrorCode.INVALID_QUERY_KEY,
                "A fetcher is required when querying by key",
                ErrorContext(operation="get"),
                key=normalize_key(query),
            )
        return QueryDefinition(normalize_key(query), fetcher, options or QueryOptions())

    def _stale_time(self, entry: _CacheEntry) -> float:
        if entry.options.stale_time is not None:
            return entry.options.stale_time
        return self.settings.stale_time

    def _gc_time(self, entry: _CacheEntry) -> float:
        if entry.options.gc_time is not None:
            return entry.options.gc_time
        return self.settings.gc_time

    def _is_stale(self, entry: _CacheEntry, now: float) -> bool:
        if entry.invalidated or entry.data_updated_at is None:
            return True
        return now - entry.data_updated_at >= self._stale_time(entry)

    def _is_expired(self, entry: _CacheEntry, now: float) -> bool:
        if entry.observers or entry.is_fetching:
            return False
        return now - entry.last_used_at >= self._gc_time(entry)

    @staticmethod
    def _has_active_observers(entry: _CacheEntry) -> bool:
        return any(observer.active for observer in entry.observers)

    def _snapshot(self, entry: _CacheEntry) -> QueryState:
        if entry.error is not None:
            status = QueryStatus.ERROR
        elif entry.has_data:
            status = QueryStatus.SUCCESS
        else:
            status = QueryStatus.PENDING
        return QueryState(
            key=entry.key,
            data=entry.data,
            has_data=entry.has_data,
            status=status,
            error=entry.error,
            data_updated_at=entry.data_updated_at,
            data_version=entry.data_version,
            is_stale=self._is_stale(entry, self._clock()),
            is_fetching=entry.is_fetching,
            is_invalidated=entry.invalidated,
            failure_count=entry.failure_count,
        )

    def _notify(self, entry: _CacheEntry) -> None:
        if not entry.observers:
            return
        state = self._snapshot(entry)
        for observer in list(entry.observers):
            observer._deliver(state)

    def _write_data(self, entry: _CacheEntry, data: Any, now: float) -> None:
        entry.data = data
        entry.has_data = True
        entry.data_updated_at = now
        entry.data_version += 1
        entry.invalidated = False
        entry.error = None
        entry.failure_count = 0

    def _dispatch(self, entry: _CacheEntry, *, force: bool = False) -> asyncio.Task[None]:
        if not force and entry.in_flight is not None and not entry.in_flight.done():
            return entry.in_flight

        if entry.fetcher is None:
            raise QueryError(
                ErrorCode.INVALID_QUERY_KEY,
                f"No fetcher registered for key {entry.key!r}",
                ErrorContext(operation=LogOperationNames.QUERY_FETCH),
                key=entry.key,
            )

        entry.dispatch_seq += 1
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(entry, entry.dispatch_seq, entry.fetcher, entry.options),
        )
        entry.in_flight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._notify(entry)
        return task

    async def _await_data(self, entry: _CacheEntry) -> Any:
        while True:
            task = entry.in_flight if entry.is_fetching else self._dispatch(entry)
            await asyncio.shield(task)

            if entry.has_data:
                return entry.data
            if entry.is_fetching:
                continue
            if entry.error is not None:
                raise entry.error
            raise QueryError(
                ErrorCode.QUERY_FAILED,
                f"Query {entry.key!r} settled without data",
                ErrorContext(operation=LogOperationNames.QUERY_FETCH),
                key=entry.key,
            )

    def _backoff(self, options: QueryOptions, attempt: int) -> float:
        base = options.retry_delay if options.retry_delay is not None else self.settings.retry_delay
        return min(base * (QueryCacheConfig.BACKOFF_FACTOR**attempt), self.settings.retry_delay_max)

    async def _run_fetch(
        self,
        entry: _CacheEntry,
        seq: int,
        fetcher: Fetcher,
        options: QueryOptions,
    ) -> None:
        retries = options.retry if options.retry is not None else self.settings.retry
        started = self._clock()
        last_error: Exception | None = None

        try:
            for attempt in range(retries + 1):
                try:
                    data = await fetcher()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    last_error = e
                    logger.warning(
                        "Fetch attempt %d/%d failed for %s: %s",
                        attempt + 1,
                        retries + 1,
                        entry.key,
                        e,
                    )
                    if attempt < retries:
                        await self._sleep(self._backoff(options, attempt))
                    continue

                self._apply_result(entry, seq, data)
                log_operation_success(
                    logger,
                    LogOperationNames.QUERY_FETCH,
                    (self._clock() - started) * 1000,
                    result_info={"key": repr(entry.key), "seq": seq, "attempts": attempt + 1},
                )
                return

            self._apply_failure(entry, seq, last_error, retries)
        finally:
            if entry.in_flight is asyncio.current_task():
                entry.in_flight = None
            self._notify(entry)

    def _apply_result(self, entry: _CacheEntry, seq: int, data: Any) -> None:
        if seq <= entry.applied_seq:
            logger.debug(
                "Discarding out-of-order result for %s (seq %d <= applied %d)",
                entry.key,
                seq,
                entry.applied_seq,
            )
            return
        entry.applied_seq = seq
        self._write_data(entry, data, self._clock())

    def _apply_failure(
        self,
        entry: _CacheEntry,
        seq: int,
        last_error: Exception | None,
        retries: int,
    ) -> None:
        if seq != entry.dispatch_seq:
            logger.debug("Dropping failure of superseded fetch for %s", entry.key)
            return

        entry.failure_count += 1
        error = QueryError(
            ErrorCode.QUERY_FAILED,
            f"Query {entry.key!r} failed after {retries} retries: {last_error}",
            ErrorContext(
                operation=LogOperationNames.QUERY_FETCH,
                additional_data={"key": repr(entry.key), "retries": retries},
            ),
            original_error=last_error,
            key=entry.key,
        )
        entry.error = error
        log_operation_error(logger, error, operation=LogOperationNames.QUERY_FETCH)


__all__ = [
    "Fetcher",
    "QueryCache",
    "QueryDefinition",
    "QueryObserver",
    "QueryOptions",
    "QueryState",
    "QueryStatus",
]
