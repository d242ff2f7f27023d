"""In-process implementation of the remote store contract.

Rows live in per-table lists of dicts. The store enforces the constraints
the hosted schema declares (unique vote/follow/chat pairs, case-insensitive
unique usernames, no self-follow, canonical chat ordering), runs the two
stored procedures the client calls, keeps denormalised counters the way the
backend triggers do, and delivers inserts to realtime subscribers.

Every operation yields to the event loop before touching state, so
concurrent callers interleave the way they would against a network store.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Sequence

from feedsync.services.remote.filters import Predicate, eq, match_all
from feedsync.services.remote.protocol import ChannelHandle, RealtimeCallback, Row
from feedsync.shared.constants.feed import FeedDefaults, SortBy, TimeFilter
from feedsync.shared.constants.query_keys import Procedures, RemoteErrorCodes, Tables
from feedsync.shared.constants.validation import DisplayNames
from feedsync.shared.errors import ErrorCode, create_remote_error

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Columns filled in when an insert leaves them out
_DEFAULTS: dict[str, dict[str, Any]] = {
    Tables.USERS: {
        "username": None,
        "nickname": None,
        "bio": None,
        "email": None,
        "is_anonymous": False,
        "school_id": None,
        "school_name": None,
        "location_radius": FeedDefaults.DEFAULT_RADIUS,
        "onboarding_completed": False,
    },
    Tables.POSTS: {"score": 0, "comment_count": 0, "location_name": None},
    Tables.COMMENTS: {"score": 0},
    Tables.VOTES_POSTS: {},
    Tables.VOTES_COMMENTS: {},
    Tables.FOLLOWS: {},
    Tables.CHATS: {},
    Tables.MESSAGES: {"is_read": False},
    Tables.NOTIFICATIONS: {"is_read": False, "post_id": None, "comment_id": None},
}

_UNIQUE: dict[str, tuple[tuple[str, ...], ...]] = {
    Tables.VOTES_POSTS: (("user_id", "post_id"),),
    Tables.VOTES_COMMENTS: (("user_id", "comment_id"),),
    Tables.FOLLOWS: (("follower_id", "following_id"),),
    Tables.CHATS: (("user1_id", "user2_id"),),
}

_REQUIRED: dict[str, tuple[str, ...]] = {
    Tables.POSTS: ("user_id", "content"),
    Tables.COMMENTS: ("post_id", "user_id", "content"),
    Tables.VOTES_POSTS: ("user_id", "post_id", "vote_type"),
    Tables.VOTES_COMMENTS: ("user_id", "comment_id", "vote_type"),
    Tables.FOLLOWS: ("follower_id", "following_id"),
    Tables.CHATS: ("user1_id", "user2_id"),
    Tables.MESSAGES: ("chat_id", "sender_id", "content"),
    Tables.NOTIFICATIONS: ("user_id", "type"),
}


@dataclass
class _Failure:
    operation: str | None
    target: str | None
    error: Exception
    remaining: int


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * FeedDefaults.EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


class InMemoryRemoteStore:
    """Remote store kept in process memory.

    Args:
        clock: Source of wall-clock timestamps (UTC)
        latency: Seconds each operation waits before running
    """

    def __init__(self, *, clock: Clock | None = None, latency: float = 0.0) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.latency = latency
        self._tables: dict[str, list[Row]] = {table: [] for table in _DEFAULTS}
        self._channels: dict[int, ChannelHandle] = {}
        self._failures: list[_Failure] = []
        self._deliveries: set[asyncio.Task[None]] = set()
        self._last_timestamp: datetime | None = None
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------ test hooks

    def fail_next(
        self,
        operation: str | None = None,
        target: str | None = None,
        *,
        error: Exception | None = None,
        times: int = 1,
    ) -> None:
        """Make the next matching call(s) raise.

        Args:
            operation: Operation name (``select``, ``insert``, ``rpc``...) or
                None for any
            target: Table or procedure name, or None for any
            error: Exception to raise; defaults to a network failure
            times: Number of calls to fail
        """
        failure = error or create_remote_error(
            "Simulated network failure",
            operation=operation,
            table=target,
            code=ErrorCode.NETWORK_ERROR,
        )
        self._failures.append(_Failure(operation, target, failure, times))

    def calls_to(self, operation: str, target: str | None = None) -> int:
        return sum(
            1 for op, name in self.calls if op == operation and (target is None or name == target)
        )

    def seed(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        """Insert rows synchronously, bypassing the call log and realtime."""
        return [self._insert_row(table, row) for row in rows]

    def rows(self, table: str) -> list[Row]:
        return [dict(row) for row in self._table(table)]

    async def flush_realtime(self) -> None:
        """Wait for async realtime callbacks scheduled so far."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # ------------------------------------------------------------- contract

    async def select(
        self,
        table: str,
        filters: Sequence[Predicate] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        await self._enter("select", table)
        rows = [dict(row) for row in self._table(table) if match_all(row, filters)]
        if order_by is not None:
            present = [row for row in rows if row.get(order_by) is not None]
            missing = [row for row in rows if row.get(order_by) is None]
            present.sort(key=lambda row: row[order_by], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def select_one(self, table: str, filters: Sequence[Predicate] = ()) -> Row:
        await self._enter("select_one", table)
        rows = [dict(row) for row in self._table(table) if match_all(row, filters)]
        if len(rows) != 1:
            raise create_remote_error(
                f"Expected exactly one row from {table}, got {len(rows)}",
                operation="select_one",
                remote_code=RemoteErrorCodes.NO_ROWS,
                table=table,
                code=ErrorCode.REMOTE_NOT_FOUND,
            )
        return rows[0]

    async def count(self, table: str, filters: Sequence[Predicate] = ()) -> int:
        await self._enter("count", table)
        return sum(1 for row in self._table(table) if match_all(row, filters))

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        await self._enter("insert", table)
        stored = self._insert_row(table, row)
        self._notify(table, stored)
        return dict(stored)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Sequence[Predicate],
    ) -> list[Row]:
        await self._enter("update", table)
        return self._update_rows(table, values, filters)

    async def delete(self, table: str, filters: Sequence[Predicate]) -> list[Row]:
        await self._enter("delete", table)
        rows = self._table(table)
        removed = [row for row in rows if match_all(row, filters)]
        self._tables[table] = [row for row in rows if not match_all(row, filters)]
        for row in removed:
            self._after_delete(table, row)
        return [dict(row) for row in removed]

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        on_conflict: Sequence[str],
    ) -> Row:
        await self._enter("upsert", table)
        return self._upsert_row(table, row, on_conflict)

    async def rpc(self, name: str, params: Mapping[str, Any]) -> Any:
        await self._enter("rpc", name)
        if name == Procedures.POSTS_WITHIN_RADIUS:
            return self._posts_within_radius(**params)
        if name == Procedures.HANDLE_POST_VOTE:
            return self._handle_post_vote(**params)
        raise create_remote_error(
            f"Unknown procedure: {name}",
            operation="rpc",
            remote_code=RemoteErrorCodes.UNKNOWN_FUNCTION,
            code=ErrorCode.REMOTE_UNKNOWN_PROCEDURE,
        )

    def subscribe(
        self,
        channel_name: str,
        table: str,
        callback: RealtimeCallback,
        filters: Sequence[Predicate] = (),
    ) -> ChannelHandle:
        self._table(table)
        handle = ChannelHandle(channel_name, table, callback, tuple(filters))
        self._channels[handle.handle_id] = handle
        logger.debug("Subscribed channel %s to %s inserts", channel_name, table)
        return handle

    def unsubscribe(self, handle: ChannelHandle) -> None:
        self._channels.pop(handle.handle_id, None)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    # ------------------------------------------------------------- internals

    async def _enter(self, operation: str, target: str) -> None:
        await asyncio.sleep(self.latency)
        self.calls.append((operation, target))
        for failure in self._failures:
            if failure.remaining <= 0:
                continue
            if failure.operation not in (None, operation) or failure.target not in (None, target):
                continue
            failure.remaining -= 1
            self._failures = [f for f in self._failures if f.remaining > 0]
            raise failure.error

    def _table(self, table: str) -> list[Row]:
        try:
            return self._tables[table]
        except KeyError as e:
            raise create_remote_error(
                f"Unknown table: {table}",
                remote_code=RemoteErrorCodes.UNKNOWN_TABLE,
                table=table,
                original_error=e,
                code=ErrorCode.REMOTE_UNKNOWN_TABLE,
            ) from e

    def _timestamp(self) -> str:
        now = self._clock()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    def _insert_row(self, table: str, row: Mapping[str, Any]) -> Row:
        rows = self._table(table)
        stored: Row = dict(_DEFAULTS[table])
        stored.update(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self._timestamp())
        if table in (Tables.CHATS, Tables.USERS):
            stored.setdefault("updated_at", stored["created_at"])

        for column in _REQUIRED.get(table, ()):
            if stored.get(column) is None:
                raise create_remote_error(
                    f'null value in column "{column}" of relation "{table}"',
                    operation="insert",
                    remote_code="23502",
                    table=table,
                    code=ErrorCode.REMOTE_CONSTRAINT_VIOLATION,
                )

        self._check_constraints(table, stored)
        rows.append(stored)
        self._after_insert(table, stored)
        return stored

    def _update_rows(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Sequence[Predicate],
    ) -> list[Row]:
        updated = []
        for row in self._table(table):
            if not match_all(row, filters):
                continue
            changes = dict(values)
            if table == Tables.USERS:
                changes.setdefault("updated_at", self._timestamp())
            self._check_constraints(table, {**row, **changes}, exclude_id=row["id"])
            row.update(changes)
            updated.append(dict(row))
            if table == Tables.VOTES_COMMENTS:
                self._recompute_comment_score(row["comment_id"])
            elif table == Tables.VOTES_POSTS:
                self._recompute_post_score(row["post_id"])
        return updated

    def _upsert_row(self, table: str, row: Mapping[str, Any], on_conflict: Sequence[str]) -> Row:
        conflict_filters = [eq(column, row.get(column)) for column in on_conflict]
        existing = [r for r in self._table(table) if match_all(r, conflict_filters)]
        if existing:
            return self._update_rows(table, row, conflict_filters)[0]
        stored = self._insert_row(table, row)
        self._notify(table, stored)
        return dict(stored)

    def _check_constraints(self, table: str, row: Row, exclude_id: str | None = None) -> None:
        others = [r for r in self._table(table) if r["id"] != exclude_id]

        if exclude_id is None and any(r["id"] == row["id"] for r in others):
            self._violation(table, "id", RemoteErrorCodes.UNIQUE_VIOLATION)

        for columns in _UNIQUE.get(table, ()):
            if any(all(r.get(c) == row.get(c) for c in columns) for r in others):
                self._violation(table, ",".join(columns), RemoteErrorCodes.UNIQUE_VIOLATION)

        if table == Tables.USERS and row.get("username"):
            wanted = str(row["username"]).lower()
            if any(str(r.get("username") or "").lower() == wanted for r in others):
                self._violation(table, "username", RemoteErrorCodes.UNIQUE_VIOLATION)

        if table == Tables.FOLLOWS and row["follower_id"] == row["following_id"]:
            self._violation(table, "no_self_follow", RemoteErrorCodes.CHECK_VIOLATION)

        if table == Tables.CHATS and not str(row["user1_id"]) < str(row["user2_id"]):
            self._violation(table, "user1_id < user2_id", RemoteErrorCodes.CHECK_VIOLATION)

    @staticmethod
    def _violation(table: str, constraint: str, remote_code: str) -> None:
        kind = "unique" if remote_code == RemoteErrorCodes.UNIQUE_VIOLATION else "check"
        raise create_remote_error(
            f'{table} violates {kind} constraint "{constraint}"',
            remote_code=remote_code,
            table=table,
            code=ErrorCode.REMOTE_CONSTRAINT_VIOLATION,
        )

    def _after_insert(self, table: str, row: Row) -> None:
        if table == Tables.COMMENTS:
            self._adjust_comment_count(row["post_id"], 1)
        elif table == Tables.VOTES_POSTS:
            self._recompute_post_score(row["post_id"])
        elif table == Tables.VOTES_COMMENTS:
            self._recompute_comment_score(row["comment_id"])

    def _after_delete(self, table: str, row: Row) -> None:
        if table == Tables.COMMENTS:
            self._adjust_comment_count(row["post_id"], -1)
            self._tables[Tables.VOTES_COMMENTS] = [
                vote for vote in self._tables[Tables.VOTES_COMMENTS] if vote["comment_id"] != row["id"]
            ]
        elif table == Tables.VOTES_POSTS:
            self._recompute_post_score(row["post_id"])
        elif table == Tables.VOTES_COMMENTS:
            self._recompute_comment_score(row["comment_id"])

    def _adjust_comment_count(self, post_id: str, delta: int) -> None:
        for post in self._tables[Tables.POSTS]:
            if post["id"] == post_id:
                post["comment_count"] = max(0, post.get("comment_count", 0) + delta)

    def _recompute_post_score(self, post_id: str) -> int:
        score = sum(v["vote_type"] for v in self._tables[Tables.VOTES_POSTS] if v["post_id"] == post_id)
        for post in self._tables[Tables.POSTS]:
            if post["id"] == post_id:
                post["score"] = score
        return score

    def _recompute_comment_score(self, comment_id: str) -> int:
        score = sum(
            v["vote_type"] for v in self._tables[Tables.VOTES_COMMENTS] if v["comment_id"] == comment_id
        )
        for comment in self._tables[Tables.COMMENTS]:
            if comment["id"] == comment_id:
                comment["score"] = score
        return score

    def _notify(self, table: str, row: Row) -> None:
        payload = {"eventType": "INSERT", "table": table, "new": dict(row)}
        for handle in list(self._channels.values()):
            if handle.table != table or not match_all(row, handle.filters):
                continue
            result = handle.callback(payload)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._deliveries.add(task)
                task.add_done_callback(self._deliveries.discard)

    def _author_name(self, user_id: str) -> str:
        for user in self._tables[Tables.USERS]:
            if user["id"] == user_id:
                if user.get("is_anonymous"):
                    return DisplayNames.ANONYMOUS
                return user.get("nickname") or "User"
        return "User"

    def _posts_within_radius(
        self,
        user_lat: float,
        user_lon: float,
        radius_meters: float = FeedDefaults.DEFAULT_RADIUS,
        sort_by: str = SortBy.NEW,
        time_filter: str = TimeFilter.WEEK,
        limit_count: int = FeedDefaults.PAGE_SIZE,
    ) -> list[Row]:
        if sort_by not in SortBy.ALL or time_filter not in TimeFilter.ALL:
            raise create_remote_error(
                f"Invalid feed parameters: sort_by={sort_by!r}, time_filter={time_filter!r}",
                operation="rpc",
                remote_code="22023",
                table=Procedures.POSTS_WITHIN_RADIUS,
            )

        days = TimeFilter.DAYS[time_filter]
        cutoff = (self._clock() - timedelta(days=days)).isoformat() if days is not None else None

        results = []
        for post in self._tables[Tables.POSTS]:
            if post.get("latitude") is None or post.get("longitude") is None:
                continue
            if cutoff is not None and post["created_at"] < cutoff:
                continue
            distance = haversine_meters(user_lat, user_lon, post["latitude"], post["longitude"])
            if distance > radius_meters:
                continue
            results.append(
                {
                    **post,
                    "distance_meters": round(distance, 1),
                    "author_nickname": self._author_name(post["user_id"]),
                }
            )

        results.sort(key=lambda row: row["created_at"], reverse=True)
        if sort_by == SortBy.POPULAR:
            results.sort(key=lambda row: row["score"], reverse=True)
        return results[:limit_count]

    def _handle_post_vote(self, p_user_id: str, p_post_id: str, p_vote_type: int) -> int:
        if not any(post["id"] == p_post_id for post in self._tables[Tables.POSTS]):
            raise create_remote_error(
                f"Post {p_post_id} does not exist",
                operation="rpc",
                remote_code=RemoteErrorCodes.FOREIGN_KEY_VIOLATION,
                table=Tables.VOTES_POSTS,
                code=ErrorCode.REMOTE_CONSTRAINT_VIOLATION,
            )
        self._upsert_row(
            Tables.VOTES_POSTS,
            {"user_id": p_user_id, "post_id": p_post_id, "vote_type": p_vote_type},
            ("user_id", "post_id"),
        )
        return self._recompute_post_score(p_post_id)


__all__ = [
    "InMemoryRemoteStore",
    "haversine_meters",
]
