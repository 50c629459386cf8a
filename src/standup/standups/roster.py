"""Roster operations: join, leave and show a room's standup."""

from __future__ import annotations

import structlog

from src.standup.standups.schemas import RoomStandup
from src.standup.standups.store import RoomLocks, StandupStore

logger = structlog.get_logger(__name__)


class RosterService:
    """Direct, serialized writes to a room's member roster.

    Roster changes never touch interviews already in flight.

    Args:
        store: Persistence bridge.
        locks: Shared per-room locks (same instance the scheduler uses).
    """

    def __init__(self, store: StandupStore, locks: RoomLocks) -> None:
        self._store = store
        self._locks = locks

    async def join(self, room_id: str, member_id: str, display_name: str) -> RoomStandup:
        async with self._locks(room_id):
            standup = await self._store.get_room(room_id)
            members = {**standup.members, member_id: display_name}
            standup = await self._store.merge_room(room_id, {"members": members})
        logger.info("roster.joined", room_id=room_id, member_id=member_id)
        return standup

    async def leave(self, room_id: str, member_id: str) -> RoomStandup:
        async with self._locks(room_id):
            standup = await self._store.get_room(room_id)
            members = {k: v for k, v in standup.members.items() if k != member_id}
            standup = await self._store.merge_room(room_id, {"members": members})
        logger.info("roster.left", room_id=room_id, member_id=member_id)
        return standup

    async def show(self, room_id: str) -> RoomStandup:
        return await self._store.get_room(room_id)


def render_settings(standup: RoomStandup) -> str:
    """Render the ``standup show`` reply."""
    lines = ["**Current Standup Settings**", "", "Members:"]
    lines.extend(f"- {name}" for name in standup.members.values())
    lines.append("")
    if standup.rule is not None:
        lines.append(f"Scheduled at `{standup.rule.cronstamp}`")
    else:
        lines.append("Currently not scheduled")
    return "\n".join(lines)
