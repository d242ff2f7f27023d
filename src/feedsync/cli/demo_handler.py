"""Demo command handler for the feedsync CLI.

Runs a short scripted session of two students against the in-memory store
and shows what ended up in the query cache. Useful to see optimistic
updates, invalidation and realtime echo working together.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from typing import Any

from dependency_injector import providers
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from feedsync.cli.common.context import get_cli_context
from feedsync.cli.json_formatter import format_json_output, safe_json_serialize
from feedsync.config.loader import load_settings
from feedsync.containers import Container, shutdown, start_realtime
from feedsync.services.query_cache import QueryState
from feedsync.services.state_machine import VoteAction
from feedsync.shared.constants import CLICommands, CLIDefaults, CLIMessages, Tables

logger = logging.getLogger(__name__)

ALICE_ID = "0a3c1d5e-7f21-4b8a-9c6d-2e4f6a8b0c11"
BOB_ID = "5b7d9f1a-3c5e-4d7f-8a1b-9c2d4e6f8a22"

# Waseda main campus
CAMPUS_LATITUDE = 35.7087
CAMPUS_LONGITUDE = 139.7196

DEMO_USERS = (
    {
        "id": ALICE_ID,
        "username": "alice",
        "nickname": "Alice",
        "email": "alice@waseda.jp",
        "school_id": "waseda",
        "school_name": "Waseda University",
        "onboarding_completed": True,
    },
    {
        "id": BOB_ID,
        "username": "bob",
        "nickname": "Bob",
        "email": "bob@waseda.jp",
        "school_id": "waseda",
        "school_name": "Waseda University",
        "onboarding_completed": True,
    },
)


@dataclass
class DemoReport:
    steps: list[dict[str, str]] = field(default_factory=list)
    cache: list[QueryState] = field(default_factory=list)

    def record(self, step: str, result: str) -> None:
        logger.info("%s: %s", step, result)
        self.steps.append({"step": step, "result": result})

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": self.steps,
            "cache": [
                {
                    "key": list(state.key),
                    "status": state.status.value,
                    "data_version": state.data_version,
                    "is_stale": state.is_stale,
                    "data": safe_json_serialize(state.data),
                }
                for state in self.cache
            ],
        }


async def run_demo_session(container: Container) -> DemoReport:
    """Drive the services through a feed, vote, follow and chat session."""
    report = DemoReport()
    store = container.remote_store()
    cache = container.query_cache()
    bus = container.event_bus()
    start_realtime(container)

    store.seed(Tables.USERS, DEMO_USERS)

    posts = container.posts_service()
    follows = container.follows_service()
    chats = container.chats_service()
    bridge = container.realtime_bridge()

    post = await posts.create_post(
        BOB_ID,
        "Library 3F is quiet today",
        CAMPUS_LATITUDE,
        CAMPUS_LONGITUDE,
        location_name="Central Library",
    )
    report.record("create post", f"Bob posted {post.id}")

    observers = [
        cache.observe(posts.posts_query(CAMPUS_LATITUDE, CAMPUS_LONGITUDE)),
        cache.observe(posts.user_votes_query(ALICE_ID)),
        cache.observe(follows.follow_status_query(ALICE_ID, BOB_ID)),
    ]
    await cache.wait_idle()
    feed = cache.get_query_data(observers[0].key) or []
    report.record("load feed", f"{len(feed)} post(s) within radius")

    transition = await posts.vote_post(ALICE_ID, post.id, VoteAction.UPVOTE)
    await cache.wait_idle()
    report.record(
        "upvote",
        f"{transition.previous.name} -> {transition.current.name}, "
        f"server score {store.rows(Tables.POSTS)[0]['score']}",
    )

    following = await follows.toggle_follow(ALICE_ID, BOB_ID)
    await cache.wait_idle()
    report.record("toggle follow", "Alice follows Bob" if following else "Alice unfollowed Bob")

    chat = await chats.resolve_chat(ALICE_ID, BOB_ID)
    same_chat = await chats.resolve_chat(BOB_ID, ALICE_ID)
    report.record("resolve chat", f"{chat.id} (same from both sides: {chat.id == same_chat.id})")

    bridge.watch_messages(chat.id)
    observers.append(cache.observe(chats.messages_query(chat.id)))
    await cache.wait_idle()
    await chats.send_message(chat.id, BOB_ID, "Want to study together?")
    await store.flush_realtime()
    await bus.drain()
    await cache.wait_idle()
    messages = cache.get_query_data(observers[-1].key) or []
    report.record("send message", f"{len(messages)} message(s) cached after realtime echo")

    report.cache = [state for state in (cache.get_state(key) for key in cache.find()) if state]

    for observer in observers:
        observer.unsubscribe()
    await shutdown(container)
    return report


def _summarize(data: Any) -> str:
    if isinstance(data, list):
        return f"{len(data)} item(s)"
    if isinstance(data, dict):
        return f"{len(data)} entr{'y' if len(data) == 1 else 'ies'}"
    return str(data)


def _build_cache_table(report: DemoReport) -> Table:
    table = Table(title=CLIMessages.DEMO_TITLE, show_header=True, header_style="bold magenta")
    table.add_column(CLIMessages.COLUMN_KEY, style="cyan", no_wrap=True)
    table.add_column(CLIMessages.COLUMN_STATUS, style="yellow")
    table.add_column(CLIMessages.COLUMN_DATA, style="green")
    for state in report.cache:
        table.add_row(
            escape(" / ".join(str(part) for part in state.key)),
            f"{state.status.value}{' (stale)' if state.is_stale else ''}",
            escape(_summarize(state.data)),
        )
    return table


def handle_demo_command(console: Console | None = None) -> int:
    """Handle the demo command.

    Raises:
        FeedSyncError: If any step of the session fails
    """
    context = get_cli_context()
    container = Container()
    container.config.override(providers.Object(load_settings(context.config_file)))

    report = asyncio.run(run_demo_session(container))

    if context.is_json_output_enabled():
        output = format_json_output(success=True, command=CLICommands.DEMO, data=report.to_dict())
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.write(b"\n")
        sys.stdout.buffer.flush()
        return CLIDefaults.EXIT_SUCCESS

    console = console or Console()
    for step in report.steps:
        name = CLIMessages.DEMO_STEP.format(step=escape(step["step"]))
        console.print(f"{name} {escape(str(step['result']))}")
    console.print(_build_cache_table(report))
    console.print(CLIMessages.DEMO_DONE)
    return CLIDefaults.EXIT_SUCCESS
