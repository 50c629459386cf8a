"""Wiring of the standup components into one runtime.

startup() follows the load sequence of the persistence bridge: the store's
load signal first, then the scheduler starts and every persisted rule is
re-armed.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.standup.bot.commands import StandupBot
from src.standup.config import Settings
from src.standup.services.transport import ChatTransport
from src.standup.standups.dialogs import ScheduleDialogs
from src.standup.standups.interview import InterviewManager
from src.standup.standups.orchestrator import StandupOrchestrator
from src.standup.standups.roster import RosterService
from src.standup.standups.scheduler import StandupScheduler
from src.standup.standups.store import RoomLocks, StandupStore

logger = structlog.get_logger(__name__)


@dataclass
class StandupRuntime:
    store: StandupStore
    transport: ChatTransport
    roster: RosterService
    interviews: InterviewManager
    orchestrator: StandupOrchestrator
    scheduler: StandupScheduler
    dialogs: ScheduleDialogs
    bot: StandupBot

    async def startup(self) -> int:
        """Load persisted state, start the scheduler and restore all jobs."""
        await self.store.load()
        self.scheduler.start()
        restored = await self.scheduler.restore_all()
        logger.info("standup_runtime.started", jobs_restored=restored)
        return restored

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        cancelled = self.interviews.cancel_all()
        logger.info("standup_runtime.stopped", interviews_cancelled=cancelled)


def build_runtime(
    settings: Settings,
    store: StandupStore,
    transport: ChatTransport,
) -> StandupRuntime:
    """Assemble every standup component around one store and transport."""
    locks = RoomLocks()
    roster = RosterService(store, locks)
    interviews = InterviewManager(
        store,
        transport,
        timeout_seconds=settings.standup_timeout_seconds,
        bot_name=settings.BOT_NAME,
    )
    orchestrator = StandupOrchestrator(store, transport, interviews, locks)
    scheduler = StandupScheduler(
        store,
        locks,
        orchestrator.trigger,
        timezone=settings.SCHEDULER_TIMEZONE,
    )
    dialogs = ScheduleDialogs(
        scheduler,
        transport,
        max_hour=settings.STANDUP_MAX_HOUR,
        timeout_seconds=settings.schedule_dialog_timeout_seconds,
        bot_name=settings.BOT_NAME,
    )
    bot = StandupBot(
        transport,
        roster,
        scheduler,
        orchestrator,
        interviews,
        dialogs,
        bot_name=settings.BOT_NAME,
    )
    return StandupRuntime(
        store=store,
        transport=transport,
        roster=roster,
        interviews=interviews,
        orchestrator=orchestrator,
        scheduler=scheduler,
        dialogs=dialogs,
        bot=bot,
    )
