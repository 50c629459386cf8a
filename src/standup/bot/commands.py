"""Chat command surface and incoming message dispatch.

Commands are recognised when the message is addressed to the bot (leading
mention of BOT_NAME) or sent in a direct-message room, case-insensitively:

    standup join | leave | show | schedule | sched | cancel
    standup init | initiate | get room id

Dispatch order for every incoming message:
1. a reply on a live interview's private room goes to that interview;
2. a standup command is executed;
3. an answer to the sender's open schedule dialog in that room;
4. anything else from a member with a live interview is a misdirected
   reply (logged, question asked again).
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable

import structlog

from src.standup.core.monitoring import standups_triggered_total
from src.standup.services.transport import ChatTransport
from src.standup.standups.dialogs import ScheduleDialogs
from src.standup.standups.interview import InterviewManager, mention_pattern
from src.standup.standups.orchestrator import StandupOrchestrator
from src.standup.standups.roster import RosterService, render_settings
from src.standup.standups.scheduler import StandupScheduler
from src.standup.standups.schemas import IncomingMessage

logger = structlog.get_logger(__name__)

Handler = Callable[[IncomingMessage], Awaitable[None]]


class StandupBot:
    """Maps chat messages onto roster, schedule and standup operations."""

    def __init__(
        self,
        transport: ChatTransport,
        roster: RosterService,
        scheduler: StandupScheduler,
        orchestrator: StandupOrchestrator,
        interviews: InterviewManager,
        dialogs: ScheduleDialogs,
        bot_name: str = "hubot",
    ) -> None:
        self._transport = transport
        self._roster = roster
        self._scheduler = scheduler
        self._orchestrator = orchestrator
        self._interviews = interviews
        self._dialogs = dialogs
        self._mention = mention_pattern(bot_name)
        self._routes: list[tuple[re.Pattern[str], Handler]] = [
            (re.compile(r"^standup show\b", re.I), self._show),
            (re.compile(r"^standup sched(ule)?\b", re.I), self._schedule),
            (re.compile(r"^standup join\b", re.I), self._join),
            (re.compile(r"^standup leave\b", re.I), self._leave),
            (re.compile(r"^standup cancel\b", re.I), self._cancel),
            (re.compile(r"^standup get room id\b", re.I), self._room_id),
            (re.compile(r"^standup (init|initiate)\b", re.I), self._init),
        ]

    def command_text(self, message: IncomingMessage) -> str | None:
        """Text after the bot mention, or the whole text in a DM; None if not addressed."""
        text = message.text.strip()
        match = self._mention.match(text)
        if match is not None:
            return text[match.end():].strip()
        if message.is_direct:
            return text
        return None

    async def handle_message(self, message: IncomingMessage) -> None:
        if self._interviews.owns_channel(message):
            await self._interviews.handle_reply(message)
            return

        command = self.command_text(message)
        if command is not None:
            for pattern, handler in self._routes:
                if pattern.match(command):
                    logger.info(
                        "bot.command",
                        command=pattern.pattern,
                        room_id=message.room_id,
                        user_id=message.user_id,
                    )
                    await handler(message)
                    return

        if await self._dialogs.handle(message):
            return

        await self._interviews.handle_reply(message)

    # ── Commands ────────────────────────────────────────────────────────

    async def _join(self, message: IncomingMessage) -> None:
        await self._roster.join(message.room_id, message.user_id, message.user_name)
        await self._transport.send(
            message.room_id, f"Added {message.user_name} to the list of standup members"
        )

    async def _leave(self, message: IncomingMessage) -> None:
        await self._roster.leave(message.room_id, message.user_id)
        await self._transport.send(
            message.room_id, f"Removed {message.user_name} from the list of standup members"
        )

    async def _show(self, message: IncomingMessage) -> None:
        standup = await self._roster.show(message.room_id)
        await self._transport.send(message.room_id, render_settings(standup))

    async def _schedule(self, message: IncomingMessage) -> None:
        await self._dialogs.open(message.room_id, message.user_id)

    async def _cancel(self, message: IncomingMessage) -> None:
        await self._scheduler.cancel_schedule(message.room_id)
        await self._transport.send(message.room_id, "Cancelled the current standup")

    async def _room_id(self, message: IncomingMessage) -> None:
        await self._transport.send(
            message.room_id, f"The current room Id is {message.room_id}"
        )

    async def _init(self, message: IncomingMessage) -> None:
        standups_triggered_total.labels(source="manual").inc()
        await self._orchestrator.trigger(message.room_id)
