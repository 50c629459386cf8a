"""Recurring standup scheduler backed by APScheduler.

Owns the room -> job mapping. Only recurrence rules are persisted; job
handles live in memory and are rebuilt by restore_all() at startup.

Every armed job carries a generation number. A job that fires after its
room was rescheduled or cancelled finds a different (or no) generation and
does nothing, so a replaced schedule can never trigger a standup even if
its callback was already dispatched when the replacement happened.

Exports:
    StandupScheduler: set/cancel/restore standup cron jobs per room.
"""

from __future__ import annotations

import itertools
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.standup.core.monitoring import armed_jobs, schedule_changes_total, standups_triggered_total
from src.standup.standups.schemas import RecurrenceRule, RoomStandup
from src.standup.standups.store import RoomLocks, StandupStore, room_key

logger = structlog.get_logger(__name__)


class StandupScheduler:
    """Arms one cron job per scheduled room.

    Args:
        store: Persistence bridge holding the rules.
        locks: Shared per-room locks.
        trigger: Coroutine function started with the room id when a job fires
            (StandupOrchestrator.trigger).
        timezone: Timezone the rule's hour and minute are interpreted in.
        scheduler: Optional pre-built AsyncIOScheduler (tests).
    """

    def __init__(
        self,
        store: StandupStore,
        locks: RoomLocks,
        trigger: Callable[[str], Awaitable[Any]],
        timezone: str = "UTC",
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._trigger = trigger
        self._timezone = timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._jobs: dict[str, Job] = {}
        self._generations: dict[str, int] = {}
        self._counter = itertools.count(1)

    # ── Lifecycle ───────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the underlying scheduler (requires a running event loop)."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("standup_scheduler.started", timezone=self._timezone)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("standup_scheduler.stopped")

    # ── Queries ─────────────────────────────────────────────────────────

    def get_job(self, room_id: str) -> Job | None:
        """Return the live job handle for a room, if any."""
        return self._jobs.get(room_id)

    @property
    def armed_rooms(self) -> list[str]:
        return sorted(self._jobs)

    # ── Operations ──────────────────────────────────────────────────────

    async def set_schedule(self, room_id: str, rule: RecurrenceRule) -> RoomStandup:
        """Replace the room's schedule with ``rule`` and persist it."""
        async with self._locks(room_id):
            job_key = room_key(room_id)
            standup = await self._store.merge_room(
                room_id,
                {"rule": rule.model_dump(mode="json"), "job_key": job_key},
            )
            self._arm(room_id, rule)

        schedule_changes_total.labels(action="set").inc()
        logger.info(
            "standup_scheduler.schedule_set",
            room_id=room_id,
            cronstamp=rule.cronstamp,
        )
        return standup

    async def cancel_schedule(self, room_id: str) -> RoomStandup:
        """Cancel the room's job and clear the persisted rule. No-op if unscheduled."""
        async with self._locks(room_id):
            had_job = self._disarm(room_id)
            standup = await self._store.merge_room(room_id, {"rule": None, "job_key": None})

        schedule_changes_total.labels(action="cancel").inc()
        logger.info("standup_scheduler.schedule_cancelled", room_id=room_id, had_job=had_job)
        return standup

    async def restore_all(self) -> int:
        """Re-arm a job for every persisted room with a rule.

        Rules are left untouched in the store. A room that fails to restore
        is logged and skipped.

        Returns:
            Number of jobs armed.
        """
        restored = 0
        for standup in await self._store.list_rooms():
            if standup.rule is None:
                continue
            try:
                async with self._locks(standup.room_id):
                    self._arm(standup.room_id, standup.rule)
            except Exception:
                logger.warning(
                    "standup_scheduler.restore_failed",
                    room_id=standup.room_id,
                    exc_info=True,
                )
                continue
            restored += 1
            logger.info(
                "standup_scheduler.restored",
                room_id=standup.room_id,
                cronstamp=standup.rule.cronstamp,
            )

        logger.info("standup_scheduler.restore_complete", jobs=restored)
        return restored

    # ── Internals ───────────────────────────────────────────────────────

    def _arm(self, room_id: str, rule: RecurrenceRule) -> Job:
        trigger = CronTrigger(
            day_of_week=rule.day_of_week,
            hour=rule.hour,
            minute=rule.minute,
            timezone=self._timezone,
        )
        self._disarm(room_id)

        generation = next(self._counter)
        job = self._scheduler.add_job(
            self._fire,
            trigger=trigger,
            args=[room_id, generation],
            id=room_key(room_id),
            name=f"Standup for room {room_id}",
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self._jobs[room_id] = job
        self._generations[room_id] = generation
        armed_jobs.set(len(self._jobs))
        return job

    def _disarm(self, room_id: str) -> bool:
        job = self._jobs.pop(room_id, None)
        self._generations.pop(room_id, None)
        armed_jobs.set(len(self._jobs))
        if job is None:
            return False
        try:
            self._scheduler.remove_job(job.id)
        except JobLookupError:
            logger.debug("standup_scheduler.job_already_gone", room_id=room_id)
        return True

    async def _fire(self, room_id: str, generation: int) -> None:
        if self._generations.get(room_id) != generation:
            logger.info(
                "standup_scheduler.stale_job_skipped",
                room_id=room_id,
                generation=generation,
            )
            return

        standups_triggered_total.labels(source="schedule").inc()
        logger.info("standup_scheduler.job_fired", room_id=room_id)
        try:
            await self._trigger(room_id)
        except Exception:
            logger.error("standup_scheduler.trigger_failed", room_id=room_id, exc_info=True)
