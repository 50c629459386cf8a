"""Tests for the per-member interview state machine.

Covers:
- start: banner + first question on the member's private room, record reset
- replies on the private room advance Q1 -> Q2 -> Q3 -> COMPLETE
- misdirected replies re-ask without advancing
- timeout after 0, 1 and 2 answers: no report, answers kept
- duplicate start rejected, leading bot mention stripped
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.standup.standups.interview import (
    BANNER,
    InterviewManager,
    InterviewState,
)
from src.standup.standups.schemas import IncomingMessage, InterviewRecord

Q1 = "@Alice, what did you do last day?"
Q2 = "@Alice, what will you do today?"
Q3 = "@Alice, any blockers?"


def _manager(store, transport, timeout_seconds: float = 60.0) -> tuple[InterviewManager, AsyncMock]:
    manager = InterviewManager(store, transport, timeout_seconds=timeout_seconds, bot_name="hubot")
    on_complete = AsyncMock()
    manager.set_completion_handler(on_complete)
    return manager, on_complete


def make_message(
    text: str,
    room_id: str = "R1",
    user_id: str = "alice",
    user_name: str = "Alice",
    is_direct: bool = False,
) -> IncomingMessage:
    return IncomingMessage(
        user_id=user_id, user_name=user_name, room_id=room_id, text=text, is_direct=is_direct
    )


def _dm(text: str) -> IncomingMessage:
    return make_message(text, room_id="dm-alice", is_direct=True)


# ── Start ────────────────────────────────────────────────────────────────────


class TestStart:
    """Tests for InterviewManager.start."""

    @pytest.mark.asyncio
    async def test_sends_banner_then_first_question(self, store, transport):
        manager, _ = _manager(store, transport)
        session = await manager.start("R1", "alice", "Alice")

        assert session is not None
        assert session.state is InterviewState.AWAITING_Q1
        assert session.dm_room_id == "dm-alice"
        assert session.deadline is not None
        assert transport.messages_to("dm-alice") == [BANNER, Q1]
        assert transport.messages_to("R1") == []
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_resets_previous_answers(self, store, transport):
        await store.merge_interview("R1", "alice", {"yday": "old", "today": "old"})
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")

        assert await store.get_interview("R1", "alice") == InterviewRecord()
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_second_start_rejected(self, store, transport):
        """The live session keeps its state; no second banner is sent."""
        manager, _ = _manager(store, transport)
        first = await manager.start("R1", "alice", "Alice")
        await manager.handle_reply(_dm("shipped X"))

        second = await manager.start("R1", "alice", "Alice")

        assert second is None
        assert manager.get_session("R1", "alice") is first
        assert first.state is InterviewState.AWAITING_Q2
        assert transport.messages_to("dm-alice").count(BANNER) == 1
        assert (await store.get_interview("R1", "alice")).yday == "shipped X"
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_dm_lookup_failure_leaves_no_session(self, store, transport):
        transport.failing_users.add("alice")
        manager, _ = _manager(store, transport)

        with pytest.raises(LookupError):
            await manager.start("R1", "alice", "Alice")
        assert manager.active_count == 0

    @pytest.mark.asyncio
    async def test_same_member_two_rooms(self, store, transport):
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")
        await manager.start("R2", "alice", "Alice")
        assert manager.active_count == 2
        assert [s.room_id for s in manager.sessions_for_user("alice")] == ["R1", "R2"]
        manager.cancel_all()


# ── Replies ──────────────────────────────────────────────────────────────────


class TestReplies:
    """Tests for InterviewManager.handle_reply."""

    @pytest.mark.asyncio
    async def test_full_interview_completes_once(self, store, transport):
        manager, on_complete = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")

        assert await manager.handle_reply(_dm("shipped X"))
        assert await manager.handle_reply(_dm("ship Y"))
        assert await manager.handle_reply(_dm("none"))

        assert transport.messages_to("dm-alice") == [BANNER, Q1, Q2, Q3]
        record = await store.get_interview("R1", "alice")
        assert record == InterviewRecord(yday="shipped X", today="ship Y", blockers="none")
        on_complete.assert_awaited_once_with("R1", "alice", "Alice")
        assert manager.get_session("R1", "alice") is None

    @pytest.mark.asyncio
    async def test_reply_after_completion_is_not_an_answer(self, store, transport):
        manager, on_complete = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")
        for text in ("a", "b", "c"):
            await manager.handle_reply(_dm(text))

        assert await manager.handle_reply(_dm("extra")) is False
        on_complete.assert_awaited_once()
        assert (await store.get_interview("R1", "alice")).blockers == "c"

    @pytest.mark.asyncio
    async def test_completion_logs_duration(self, store, transport):
        manager, _ = _manager(store, transport)
        with patch("src.standup.standups.interview.logger", MagicMock()) as mock_logger:
            await manager.start("R1", "alice", "Alice")
            for text in ("a", "b", "c"):
                await manager.handle_reply(_dm(text))

        completed = [
            c for c in mock_logger.info.call_args_list if c.args[:1] == ("interview.completed",)
        ]
        assert len(completed) == 1
        assert completed[0].kwargs["member_id"] == "alice"
        assert completed[0].kwargs["duration_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_misdirected_reply_reasks(self, store, transport):
        """A message in the group room repeats the question and does not advance."""
        manager, _ = _manager(store, transport)
        session = await manager.start("R1", "alice", "Alice")

        handled = await manager.handle_reply(make_message("shipped X", room_id="R1"))

        assert handled is True
        assert session.state is InterviewState.AWAITING_Q1
        assert transport.messages_to("dm-alice") == [BANNER, Q1, Q1]
        assert (await store.get_interview("R1", "alice")).yday is None
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_misdirected_reply_does_not_extend_deadline(self, store, transport):
        manager, _ = _manager(store, transport)
        session = await manager.start("R1", "alice", "Alice")
        deadline = session.deadline

        await manager.handle_reply(make_message("hello", room_id="R1"))
        assert session.deadline == deadline
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_other_users_ignored(self, store, transport):
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")

        bob = make_message("hi", room_id="dm-alice", user_id="bob", user_name="Bob")
        assert await manager.handle_reply(bob) is False
        assert manager.get_session("R1", "alice").state is InterviewState.AWAITING_Q1
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_bot_mention_stripped(self, store, transport):
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")

        await manager.handle_reply(_dm("@hubot shipped X"))
        await manager.handle_reply(_dm("Hubot: ship Y"))

        record = await store.get_interview("R1", "alice")
        assert record.yday == "shipped X"
        assert record.today == "ship Y"
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_answers_stored_verbatim(self, store, transport):
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")
        await manager.handle_reply(_dm("- fixed **bug**\n- wrote `tests`"))

        assert (await store.get_interview("R1", "alice")).yday == "- fixed **bug**\n- wrote `tests`"
        manager.cancel_all()

    @pytest.mark.asyncio
    async def test_owns_channel(self, store, transport):
        manager, _ = _manager(store, transport)
        await manager.start("R1", "alice", "Alice")

        assert manager.owns_channel(_dm("x"))
        assert not manager.owns_channel(make_message("x", room_id="R1"))
        manager.cancel_all()


# ── Timeout ──────────────────────────────────────────────────────────────────


class TestTimeout:
    """Interviews that go silent are dropped without a report."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answers", [0, 1, 2])
    async def test_timeout_after_partial_answers(self, store, transport, answers):
        manager, on_complete = _manager(store, transport, timeout_seconds=0.05)
        session = await manager.start("R1", "alice", "Alice")
        replies = ["shipped X", "ship Y"][:answers]
        for text in replies:
            await manager.handle_reply(_dm(text))

        await asyncio.sleep(0.15)

        assert session.state is InterviewState.TIMED_OUT
        assert manager.get_session("R1", "alice") is None
        on_complete.assert_not_awaited()
        assert (await store.get_interview("R1", "alice")).answered == answers

    @pytest.mark.asyncio
    async def test_late_reply_after_timeout_ignored(self, store, transport):
        manager, on_complete = _manager(store, transport, timeout_seconds=0.05)
        await manager.start("R1", "alice", "Alice")
        await asyncio.sleep(0.15)

        assert await manager.handle_reply(_dm("sorry, late")) is False
        on_complete.assert_not_awaited()
        assert (await store.get_interview("R1", "alice")).yday is None

    @pytest.mark.asyncio
    async def test_window_rearmed_per_question(self, store, transport):
        """Each question gets a full window of its own."""
        manager, on_complete = _manager(store, transport, timeout_seconds=0.2)
        await manager.start("R1", "alice", "Alice")

        for text in ("a", "b", "c"):
            await asyncio.sleep(0.12)
            await manager.handle_reply(_dm(text))

        on_complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_restart_after_timeout(self, store, transport):
        manager, _ = _manager(store, transport, timeout_seconds=0.05)
        await manager.start("R1", "alice", "Alice")
        await asyncio.sleep(0.15)

        assert await manager.start("R1", "alice", "Alice") is not None
        manager.cancel_all()


# ── Cancel ───────────────────────────────────────────────────────────────────


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_all(self, store, transport):
        manager, on_complete = _manager(store, transport)
        first = await manager.start("R1", "alice", "Alice")
        await manager.start("R1", "bob", "Bob")

        assert manager.cancel_all() == 2
        assert manager.active_count == 0
        assert first.state is InterviewState.CANCELLED
        assert await manager.handle_reply(_dm("x")) is False
        on_complete.assert_not_awaited()

    def test_cancel_unknown_session(self, store, transport):
        manager, _ = _manager(store, transport)
        assert manager.cancel("R1", "nobody") is False
