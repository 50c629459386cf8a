"""Two-step schedule setup dialog: weekday letters, then HH:mm.

A dialog is keyed by (room, user) and expires after
SCHEDULE_DIALOG_TIMEOUT. Bad weekday input aborts the dialog without
storing anything; a time that does not match the pattern leaves the dialog
waiting on the same step.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from src.standup.services.transport import ChatTransport
from src.standup.standups.interview import mention_pattern
from src.standup.standups.parsing import BadWeekdayError, parse_time, parse_weekdays
from src.standup.standups.scheduler import StandupScheduler
from src.standup.standups.schemas import IncomingMessage, RecurrenceRule

logger = structlog.get_logger(__name__)

WEEKDAYS_PROMPT = (
    "What days of the week should this run for (MTWRFSD) "
    "(eq: Monday, Tuesday, Wednesday, thuRsday, Friday, Saturday, sunDay) ?"
)
TIME_PROMPT = "What time should this run at (HH:mm) (H: 00-{max_hour:02d}, M: 00-59)?"


class DialogStep(str, Enum):
    WEEKDAYS = "weekdays"
    TIME = "time"


@dataclass
class ScheduleDialog:
    room_id: str
    user_id: str
    step: DialogStep = DialogStep.WEEKDAYS
    weekdays: tuple[int, ...] = ()
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.room_id, self.user_id)


class ScheduleDialogs:
    """Open schedule dialogs and feed them the user's answers.

    Args:
        scheduler: Receives the finished rule via set_schedule().
        transport: Chat transport for prompts and replies.
        max_hour: Highest hour accepted in the time step.
        timeout_seconds: Lifetime of an unanswered dialog step.
        bot_name: Mention prefix stripped from answers.
    """

    def __init__(
        self,
        scheduler: StandupScheduler,
        transport: ChatTransport,
        max_hour: int = 23,
        timeout_seconds: float = 30.0,
        bot_name: str = "hubot",
    ) -> None:
        self._scheduler = scheduler
        self._transport = transport
        self._max_hour = max_hour
        self._timeout_seconds = timeout_seconds
        self._mention = mention_pattern(bot_name)
        self._dialogs: dict[tuple[str, str], ScheduleDialog] = {}

    def get(self, room_id: str, user_id: str) -> ScheduleDialog | None:
        return self._dialogs.get((room_id, user_id))

    async def open(self, room_id: str, user_id: str) -> ScheduleDialog:
        """Start (or restart) the dialog and ask for the weekdays."""
        previous = self._dialogs.get((room_id, user_id))
        if previous is not None:
            self._discard(previous)

        dialog = ScheduleDialog(room_id=room_id, user_id=user_id)
        self._dialogs[dialog.key] = dialog
        self._arm_timeout(dialog)
        await self._transport.send(room_id, WEEKDAYS_PROMPT)
        logger.info("schedule_dialog.opened", room_id=room_id, user_id=user_id)
        return dialog

    async def handle(self, message: IncomingMessage) -> bool:
        """Feed a message to the sender's dialog in that room.

        Returns:
            True if the message was consumed by a dialog step.
        """
        dialog = self._dialogs.get((message.room_id, message.user_id))
        if dialog is None:
            return False

        text = self._mention.sub("", message.text, count=1).strip()

        if dialog.step is DialogStep.WEEKDAYS:
            try:
                dialog.weekdays = parse_weekdays(text)
            except BadWeekdayError as exc:
                self._discard(dialog)
                logger.info(
                    "schedule_dialog.bad_weekday",
                    room_id=dialog.room_id,
                    user_id=dialog.user_id,
                    char=exc.char,
                )
                await self._transport.send(dialog.room_id, str(exc))
                return True

            dialog.step = DialogStep.TIME
            self._arm_timeout(dialog)
            await self._transport.send(
                dialog.room_id, TIME_PROMPT.format(max_hour=min(self._max_hour, 23))
            )
            return True

        parsed = parse_time(text, self._max_hour)
        if parsed is None:
            return False

        hour, minute = parsed
        rule = RecurrenceRule(minute=minute, hour=hour, weekdays=dialog.weekdays)
        self._discard(dialog)
        await self._scheduler.set_schedule(dialog.room_id, rule)
        await self._transport.send(
            dialog.room_id, f"Standup scheduled at `{rule.cronstamp}`"
        )
        return True

    def _arm_timeout(self, dialog: ScheduleDialog) -> None:
        if dialog.timer is not None:
            dialog.timer.cancel()
        loop = asyncio.get_running_loop()
        dialog.timer = loop.call_later(self._timeout_seconds, self._expire, dialog)

    def _expire(self, dialog: ScheduleDialog) -> None:
        if self._dialogs.get(dialog.key) is not dialog:
            return
        self._discard(dialog)
        logger.info(
            "schedule_dialog.timed_out",
            room_id=dialog.room_id,
            user_id=dialog.user_id,
            step=dialog.step.value,
        )

    def _discard(self, dialog: ScheduleDialog) -> None:
        if dialog.timer is not None:
            dialog.timer.cancel()
            dialog.timer = None
        if self._dialogs.get(dialog.key) is dialog:
            del self._dialogs[dialog.key]
