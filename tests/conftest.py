"""Shared fixtures for standup tests.

Provides:
- RecordingTransport: in-process ChatTransport that records every message
- In-memory persistence bridge
- A fully wired StandupRuntime on top of both
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from src.standup.bot.runtime import StandupRuntime, build_runtime
from src.standup.config import Settings
from src.standup.standups.store import MemoryStandupStore


class RecordingTransport:
    """ChatTransport that keeps sent messages in order.

    Direct-message rooms are ``dm-<user_id>``.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.dm_lookups: list[str] = []
        self.failing_users: set[str] = set()

    async def send(self, room_id: str, text: str) -> None:
        self.sent.append((room_id, text))

    async def get_direct_message_room(self, user_id: str, display_name: str) -> str:
        self.dm_lookups.append(user_id)
        if user_id in self.failing_users:
            raise LookupError(f"no DM with {display_name}")
        return f"dm-{user_id}"

    def messages_to(self, room_id: str) -> list[str]:
        return [text for room, text in self.sent if room == room_id]


def make_settings(**overrides) -> Settings:
    defaults = {
        "STANDUP_TIMEOUT": 30 * 60 * 1000,
        "SCHEDULE_DIALOG_TIMEOUT": 30 * 1000,
        "STANDUP_MAX_HOUR": 23,
        "SCHEDULER_TIMEZONE": "UTC",
        "BOT_NAME": "hubot",
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def store() -> MemoryStandupStore:
    return MemoryStandupStore()


@pytest_asyncio.fixture
async def runtime(store, transport) -> StandupRuntime:
    """Wired runtime; the scheduler is started on the test's event loop."""
    rt = build_runtime(make_settings(), store, transport)
    rt.scheduler.start()
    yield rt
    rt.shutdown()
