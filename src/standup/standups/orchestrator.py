"""Standup session orchestration: fan out interviews, publish reports.

A trigger posts a waiting notice to the room and starts one interview per
roster member. Each member's report is published as soon as that member
completes; there is no barrier waiting for the rest of the room.
"""

from __future__ import annotations

import asyncio

import structlog

from src.standup.services.transport import ChatTransport
from src.standup.standups.interview import InterviewManager
from src.standup.standups.schemas import InterviewRecord
from src.standup.standups.store import RoomLocks, StandupStore

logger = structlog.get_logger(__name__)

WAITING_NOTICE = "Waiting for members to complete standup...."


def render_report(display_name: str, record: InterviewRecord) -> str:
    """Render a member's answers, verbatim, in the fixed report layout."""
    return (
        f"#### Stand Up: {display_name}\n"
        f"**yday**\n"
        f"{record.yday or ''}\n"
        f"\n"
        f"**today**\n"
        f"{record.today or ''}\n"
        f"\n"
        f"**blockers**\n"
        f"{record.blockers or ''}"
    )


class StandupOrchestrator:
    """Runs a room's standup.

    Registers itself as the interview manager's completion handler.

    Args:
        store: Persistence bridge.
        transport: Chat transport for room notices and reports.
        interviews: Interview state machine manager.
        locks: Shared per-room locks.
    """

    def __init__(
        self,
        store: StandupStore,
        transport: ChatTransport,
        interviews: InterviewManager,
        locks: RoomLocks,
    ) -> None:
        self._store = store
        self._transport = transport
        self._interviews = interviews
        self._locks = locks
        interviews.set_completion_handler(self.on_member_complete)

    async def trigger(self, room_id: str) -> int:
        """Start an interview for every member of the room.

        Returns:
            Number of interviews actually started. Members whose interview
            could not start (already running, DM lookup failure, ...) are
            logged and skipped.
        """
        await self._transport.send(room_id, WAITING_NOTICE)

        async with self._locks(room_id):
            standup = await self._store.get_room(room_id)
        members = list(standup.members.items())

        results = await asyncio.gather(
            *(
                self._interviews.start(room_id, member_id, name)
                for member_id, name in members
            ),
            return_exceptions=True,
        )

        started = 0
        for (member_id, _name), result in zip(members, results):
            if isinstance(result, Exception):
                logger.error(
                    "standup.interview_start_failed",
                    room_id=room_id,
                    member_id=member_id,
                    error=str(result),
                )
                continue
            if result is not None:
                started += 1

        logger.info(
            "standup.triggered",
            room_id=room_id,
            members=len(members),
            interviews_started=started,
        )
        return started

    async def on_member_complete(self, room_id: str, member_id: str, display_name: str) -> None:
        """Publish one member's report to the room."""
        record = await self._store.get_interview(room_id, member_id)
        await self._transport.send(room_id, render_report(display_name, record))
        logger.info("standup.report_published", room_id=room_id, member_id=member_id)
