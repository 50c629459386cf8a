"""Standup orchestration core.

Exports:
    RecurrenceRule, RoomStandup, InterviewRecord, IncomingMessage: Domain schemas.
    StandupStore, MemoryStandupStore, RedisStandupStore: Persistence bridge.
    StandupScheduler: Recurring job scheduler.
    InterviewManager: Per-member interview state machine.
    StandupOrchestrator: Fan-out of interviews and report publishing.
"""

from __future__ import annotations

from src.standup.standups.interview import InterviewManager, InterviewSession, InterviewState
from src.standup.standups.orchestrator import StandupOrchestrator
from src.standup.standups.scheduler import StandupScheduler
from src.standup.standups.schemas import (
    IncomingMessage,
    InterviewRecord,
    RecurrenceRule,
    RoomStandup,
)
from src.standup.standups.store import MemoryStandupStore, RedisStandupStore, StandupStore

__all__ = [
    "IncomingMessage",
    "InterviewManager",
    "InterviewRecord",
    "InterviewSession",
    "InterviewState",
    "MemoryStandupStore",
    "RecurrenceRule",
    "RedisStandupStore",
    "RoomStandup",
    "StandupOrchestrator",
    "StandupScheduler",
    "StandupStore",
]
