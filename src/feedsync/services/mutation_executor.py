"""Mutation lifecycle with optimistic patches and rollback.

``MutationExecutor.execute`` runs one remote write through a uniform
lifecycle:

1. validate the variables (raises before anything else happens),
2. mark the mutation pending and apply its optimistic patches,
3. perform the remote write,
4. on success ask the invalidation router to mark related keys stale,
5. on failure restore local state (invert or refetch) and re-raise.

Mutations on the same entity are not coalesced; the remote store decides
the final value. ``is_pending`` lets callers disable the triggering
control meanwhile.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from feedsync.services.invalidation_router import InvalidationRouter, MutationType
from feedsync.services.keys import QueryKey
from feedsync.services.optimistic import Command, OptimisticPatch
from feedsync.services.query_cache import QueryCache
from feedsync.shared.constants.logging import LogOperationNames
from feedsync.shared.errors import (
    ErrorCode,
    ErrorContext,
    FeedSyncError,
    InfrastructureError,
)
from feedsync.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
)

logger = logging.getLogger(__name__)

V = TypeVar("V")
R = TypeVar("R")

EntityKey = tuple[Any, ...]


class MutationStatus(str, Enum):
    """Lifecycle status of a mutation."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class ErrorPolicy(str, Enum):
    """How local state is restored after a failed write.

    ROLLBACK inverts the optimistic patches. REFETCH reloads the patched
    keys from the remote store, for multi-step writes where other changes
    may have landed in the meantime.
    """

    ROLLBACK = "rollback"
    REFETCH = "refetch"


@dataclass(frozen=True)
class Mutation(Generic[V, R]):
    """Definition of one kind of remote write."""

    mutation_type: MutationType
    mutate: Callable[[V], Awaitable[R]]
    validate: Callable[[V], Awaitable[None] | None] | None = None
    optimistic: Callable[[V], Iterable[OptimisticPatch]] | None = None
    on_error: ErrorPolicy = ErrorPolicy.ROLLBACK
    entity_key: Callable[[V], EntityKey] | None = None


@dataclass
class AppliedPatch:
    """Commands applied to one cache key and the data version they produced.

    ``refresh`` records that the entry was stale, invalidated or fetching
    before the first patch; a rollback marks it invalidated again.
    """

    key: QueryKey
    commands: list[Command] = field(default_factory=list)
    version: int = 0
    refresh: bool = False


@dataclass
class MutationRecord:
    """Transient record of one execution."""

    mutation_type: MutationType
    variables: Any
    entity_key: EntityKey | None = None
    status: MutationStatus = MutationStatus.IDLE
    data: Any = None
    error: FeedSyncError | None = None
    applied: list[AppliedPatch] = field(default_factory=list)
    submitted_at: datetime | None = None
    settled_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.status in (MutationStatus.SUCCESS, MutationStatus.ERROR)


class MutationExecutor:
    """Runs mutations against the query cache and invalidation router.

    Args:
        cache: Cache receiving optimistic patches
        router: Router notified after successful writes (optional)
        history_size: Number of settled records kept for inspection
    """

    def __init__(
        self,
        cache: QueryCache,
        router: InvalidationRouter | None = None,
        *,
        history_size: int = 100,
    ) -> None:
        self.cache = cache
        self.router = router
        self.history: deque[MutationRecord] = deque(maxlen=history_size)
        self._pending: dict[tuple[MutationType, EntityKey | None], int] = {}

    @property
    def last_record(self) -> MutationRecord | None:
        return self.history[-1] if self.history else None

    def is_pending(self, mutation_type: MutationType, entity_key: EntityKey | None = None) -> bool:
        """Whether a mutation of this type (optionally for one entity) is in flight."""
        mutation_type = MutationType(mutation_type)
        if entity_key is None:
            return any(count > 0 for (kind, _), count in self._pending.items() if kind == mutation_type)
        return self._pending.get((mutation_type, tuple(entity_key)), 0) > 0

    async def execute(self, mutation: Mutation[V, R], variables: V) -> R:
        """Run one mutation.

        Returns:
            The value returned by the remote write

        Raises:
            DomainError: If validation rejects the variables
            FeedSyncError: If the remote write fails (after local state has
                been restored)
        """
        record = MutationRecord(
            mutation_type=MutationType(mutation.mutation_type),
            variables=variables,
            entity_key=tuple(mutation.entity_key(variables)) if mutation.entity_key else None,
            submitted_at=datetime.now(timezone.utc),
        )
        self.history.append(record)
        operation = f"{LogOperationNames.MUTATION_EXECUTE}:{record.mutation_type.value}"

        if mutation.validate is not None:
            try:
                result = mutation.validate(variables)
                if inspect.isawaitable(result):
                    await result
            except FeedSyncError as e:
                self._settle(record, MutationStatus.ERROR, error=e)
                raise

        log_operation_start(logger, operation, {"entity_key": repr(record.entity_key)})
        started = datetime.now(timezone.utc)
        pending_key = (record.mutation_type, record.entity_key)
        self._pending[pending_key] = self._pending.get(pending_key, 0) + 1
        record.status = MutationStatus.PENDING

        try:
            try:
                if mutation.optimistic is not None:
                    self._apply_patches(record, mutation.optimistic(variables))
                data = await mutation.mutate(variables)
            except FeedSyncError as e:
                await self._recover(record, mutation.on_error)
                self._fail(record, e, operation)
                raise
            except Exception as e:
                error = InfrastructureError(
                    ErrorCode.MUTATION_FAILED,
                    f"Mutation {record.mutation_type.value} failed: {e}",
                    ErrorContext(operation=operation),
                    original_error=e,
                )
                await self._recover(record, mutation.on_error)
                self._fail(record, error, operation)
                raise error from e
        finally:
            self._pending[pending_key] -= 1
            if self._pending[pending_key] <= 0:
                del self._pending[pending_key]

        self._settle(record, MutationStatus.SUCCESS, data=data)
        log_operation_success(
            logger,
            operation,
            (datetime.now(timezone.utc) - started).total_seconds() * 1000,
            result_info={"patched_keys": len(record.applied)},
        )
        if self.router is not None:
            self.router.on_mutation_success(record.mutation_type, variables)
        return data

    def _apply_patches(self, record: MutationRecord, patches: Iterable[OptimisticPatch]) -> None:
        # record.applied grows per key written, so recovery covers every
        # patch applied before a command raised.
        applied = {entry.key: entry for entry in record.applied}
        for patch in patches:
            for key in self.cache.find(patch.pattern):
                state = self.cache.get_state(key)
                if state is None or not state.has_data:
                    continue
                command = patch.command.bind(state.data)
                data = command.apply(state.data)
                entry = applied.get(key)
                if entry is None:
                    entry = AppliedPatch(
                        key=key,
                        refresh=state.is_stale or state.is_invalidated or state.is_fetching,
                    )
                    applied[key] = entry
                    record.applied.append(entry)
                self.cache.set_query_data(key, data)
                entry.commands.append(command)
                entry.version = self.cache.get_state(key).data_version

    async def _recover(self, record: MutationRecord, policy: ErrorPolicy) -> None:
        if not record.applied:
            return
        if policy is ErrorPolicy.REFETCH:
            await self._reconcile(record)
        else:
            self._rollback(record.applied)

    def _rollback(self, applied: list[AppliedPatch]) -> None:
        for patch in reversed(applied):
            state = self.cache.get_state(patch.key)
            if state is None:
                continue
            if state.data_version != patch.version:
                # Newer data landed after the patch; let a refetch settle it.
                logger.info("Skipping rollback of %s, data changed since patch", patch.key)
                self.cache.invalidate(patch.key)
                continue
            data = state.data
            for command in reversed(patch.commands):
                data = command.invert(data)
            self.cache.set_query_data(patch.key, data)
            if patch.refresh:
                self.cache.invalidate(patch.key)
            logger.info(
                "Rolled back optimistic patch on %s",
                patch.key,
                extra={"operation": LogOperationNames.MUTATION_ROLLBACK},
            )

    async def _reconcile(self, record: MutationRecord) -> None:
        for patch in record.applied:
            state = self.cache.get_state(patch.key)
            if state is None:
                continue
            try:
                state = await self.cache.refetch(patch.key)
            except FeedSyncError:
                state = self.cache.get_state(patch.key)
            if state is not None and state.data_version == patch.version:
                # Authoritative reload failed; fall back to inverting.
                self._rollback([patch])
            else:
                logger.info("Reconciled %s from the remote store", patch.key)

    def _fail(self, record: MutationRecord, error: FeedSyncError, operation: str) -> None:
        self._settle(record, MutationStatus.ERROR, error=error)
        log_operation_error(logger, error, operation=operation)

    @staticmethod
    def _settle(
        record: MutationRecord,
        status: MutationStatus,
        *,
        data: Any = None,
        error: FeedSyncError | None = None,
    ) -> None:
        record.status = status
        record.data = data
        record.error = error
        record.settled_at = datetime.now(timezone.utc)


__all__ = [
    "AppliedPatch",
    "ErrorPolicy",
    "Mutation",
    "MutationExecutor",
    "MutationRecord",
    "MutationStatus",
]
