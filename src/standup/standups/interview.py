"""Per-member interview state machine.

Each member of a triggered standup gets one InterviewSession, keyed by
(room, member), that walks AWAITING_Q1 -> AWAITING_Q2 -> AWAITING_Q3 ->
COMPLETE. TIMED_OUT and CANCELLED are terminal and reachable from any
awaiting state. Sessions are ephemeral: only the answers are persisted.

Replies are correlated by the private (direct-message) room resolved when
the session starts:
- a reply on that room is recorded under the current question and the
  session advances;
- a message from the member anywhere else is discarded, logged, and the
  current question is asked again without advancing.

The reply window (STANDUP_TIMEOUT) is re-armed each time a new question
is asked. On expiry the session is dropped without a report; answers
already recorded stay in the store until the next cycle resets them.

Exports:
    InterviewState: Session states.
    InterviewSession: Ephemeral session record.
    InterviewManager: Session table and event dispatcher.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog

from src.standup.core.monitoring import interviews_total, misdirected_replies_total
from src.standup.services.transport import ChatTransport
from src.standup.standups.schemas import QUESTION_KEYS, IncomingMessage, InterviewRecord
from src.standup.standups.store import StandupStore

logger = structlog.get_logger(__name__)

BANNER = "#### Collecting today's standup"

QUESTIONS = (
    "@{name}, what did you do last day?",
    "@{name}, what will you do today?",
    "@{name}, any blockers?",
)

CompletionHandler = Callable[[str, str, str], Awaitable[None]]


class InterviewState(str, Enum):
    """Interview session states."""

    AWAITING_Q1 = "awaiting_q1"
    AWAITING_Q2 = "awaiting_q2"
    AWAITING_Q3 = "awaiting_q3"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


AWAITING_STATES = (
    InterviewState.AWAITING_Q1,
    InterviewState.AWAITING_Q2,
    InterviewState.AWAITING_Q3,
)


@dataclass
class InterviewSession:
    """One member's live interview for one room."""

    room_id: str
    member_id: str
    display_name: str
    dm_room_id: str
    state: InterviewState = InterviewState.AWAITING_Q1
    deadline: datetime | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.room_id, self.member_id)

    @property
    def is_active(self) -> bool:
        return self.state in AWAITING_STATES

    @property
    def question_index(self) -> int:
        """Index of the question being awaited (3 once complete)."""
        if self.state in AWAITING_STATES:
            return AWAITING_STATES.index(self.state)
        return len(AWAITING_STATES)

    @property
    def question_key(self) -> str:
        return QUESTION_KEYS[self.question_index]

    @property
    def question(self) -> str:
        return QUESTIONS[self.question_index].format(name=self.display_name)


def mention_pattern(bot_name: str) -> re.Pattern[str]:
    """Regex matching a leading bot mention such as ``@hubot`` or ``Hubot``."""
    return re.compile(rf"^\s*@?{re.escape(bot_name)}[\s:,]+", re.IGNORECASE)


class InterviewManager:
    """Owns the (room, member) -> InterviewSession table and drives it.

    Args:
        store: Persistence bridge for interview records.
        transport: Chat transport for questions and DM room lookup.
        timeout_seconds: Reply window per question.
        bot_name: Mention prefix stripped from answers.
    """

    def __init__(
        self,
        store: StandupStore,
        transport: ChatTransport,
        timeout_seconds: float = 1800.0,
        bot_name: str = "hubot",
    ) -> None:
        self._store = store
        self._transport = transport
        self._timeout_seconds = timeout_seconds
        self._mention = mention_pattern(bot_name)
        self._sessions: dict[tuple[str, str], InterviewSession] = {}
        self._on_complete: CompletionHandler | None = None

    def set_completion_handler(self, handler: CompletionHandler) -> None:
        """Register the coroutine called as ``handler(room_id, member_id, name)``."""
        self._on_complete = handler

    # ── Queries ─────────────────────────────────────────────────────────

    def get_session(self, room_id: str, member_id: str) -> InterviewSession | None:
        return self._sessions.get((room_id, member_id))

    def sessions_for_user(self, user_id: str) -> list[InterviewSession]:
        """Live sessions of a user, oldest first."""
        return [s for s in self._sessions.values() if s.member_id == user_id]

    def owns_channel(self, message: IncomingMessage) -> bool:
        """True when the message arrived on one of the sender's interview rooms."""
        return any(
            s.dm_room_id == message.room_id for s in self.sessions_for_user(message.user_id)
        )

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    # ── Transitions ─────────────────────────────────────────────────────

    async def start(
        self, room_id: str, member_id: str, display_name: str
    ) -> InterviewSession | None:
        """Open a private interview with a member.

        Returns None, leaving the live session untouched, if the member
        already has one for this room.
        """
        key = (room_id, member_id)
        if key in self._sessions:
            return self._reject(room_id, member_id)

        dm_room_id = await self._transport.get_direct_message_room(member_id, display_name)
        if key in self._sessions:
            return self._reject(room_id, member_id)

        session = InterviewSession(
            room_id=room_id,
            member_id=member_id,
            display_name=display_name,
            dm_room_id=dm_room_id,
        )
        self._sessions[key] = session
        try:
            await self._store.save_interview(room_id, member_id, InterviewRecord())
            await self._transport.send(dm_room_id, BANNER)
            await self._ask(session)
        except Exception:
            self._discard(session)
            raise

        interviews_total.labels(outcome="started").inc()
        logger.info(
            "interview.started",
            room_id=room_id,
            member_id=member_id,
            dm_room_id=dm_room_id,
        )
        return session

    async def handle_reply(self, message: IncomingMessage) -> bool:
        """Route a member's message to their live interview.

        Returns:
            False if the sender has no live session, True otherwise (the
            message was recorded as an answer, or rejected as misdirected).
        """
        sessions = self.sessions_for_user(message.user_id)
        if not sessions:
            return False

        for session in sessions:
            if session.dm_room_id == message.room_id:
                await self._answer(session, message)
                return True

        # Not on any private channel of this member: ask again, do not advance
        session = sessions[0]
        misdirected_replies_total.inc()
        logger.warning(
            "interview.misdirected_reply",
            room_id=session.room_id,
            member_id=message.user_id,
            received_in=message.room_id,
            expected=session.dm_room_id,
        )
        await self._ask(session, rearm=False)
        return True

    def cancel(self, room_id: str, member_id: str) -> bool:
        session = self._sessions.get((room_id, member_id))
        if session is None:
            return False
        session.state = InterviewState.CANCELLED
        self._discard(session)
        interviews_total.labels(outcome="cancelled").inc()
        logger.info("interview.cancelled", room_id=room_id, member_id=member_id)
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for room_id, member_id in list(self._sessions):
            cancelled += self.cancel(room_id, member_id)
        return cancelled

    # ── Internals ───────────────────────────────────────────────────────

    def _reject(self, room_id: str, member_id: str) -> None:
        interviews_total.labels(outcome="rejected").inc()
        logger.info("interview.already_active", room_id=room_id, member_id=member_id)
        return None

    def _is_live(self, session: InterviewSession) -> bool:
        return self._sessions.get(session.key) is session and session.is_active

    async def _answer(self, session: InterviewSession, message: IncomingMessage) -> None:
        async with session.lock:
            if not self._is_live(session):
                return
            key = session.question_key
            answer = self._mention.sub("", message.text, count=1).strip()
            await self._store.merge_interview(session.room_id, session.member_id, {key: answer})
            # The window may have closed while the answer was being written
            if not self._is_live(session):
                return

            logger.debug(
                "interview.answer_recorded",
                room_id=session.room_id,
                member_id=session.member_id,
                question=key,
            )
            if session.state is InterviewState.AWAITING_Q3:
                session.state = InterviewState.COMPLETE
                self._discard(session)
                interviews_total.labels(outcome="completed").inc()
                logger.info(
                    "interview.completed",
                    room_id=session.room_id,
                    member_id=session.member_id,
                    duration_seconds=round(
                        (datetime.now(timezone.utc) - session.started_at).total_seconds(), 1
                    ),
                )
                if self._on_complete is not None:
                    await self._on_complete(
                        session.room_id, session.member_id, session.display_name
                    )
                return

            session.state = AWAITING_STATES[session.question_index + 1]
            await self._ask(session)

    async def _ask(self, session: InterviewSession, rearm: bool = True) -> None:
        if rearm:
            self._arm_timeout(session)
        await self._transport.send(session.dm_room_id, session.question)

    def _arm_timeout(self, session: InterviewSession) -> None:
        if session.timer is not None:
            session.timer.cancel()
        loop = asyncio.get_running_loop()
        session.deadline = datetime.now(timezone.utc) + timedelta(seconds=self._timeout_seconds)
        session.timer = loop.call_later(self._timeout_seconds, self._expire, session)

    def _expire(self, session: InterviewSession) -> None:
        if not self._is_live(session):
            return
        answered = session.question_index
        session.state = InterviewState.TIMED_OUT
        self._discard(session)
        interviews_total.labels(outcome="timed_out").inc()
        logger.info(
            "interview.timed_out",
            room_id=session.room_id,
            member_id=session.member_id,
            answered=answered,
        )

    def _discard(self, session: InterviewSession) -> None:
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        if self._sessions.get(session.key) is session:
            del self._sessions[session.key]
