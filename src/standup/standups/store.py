"""Persistence bridge for standup state.

Room configurations live under ``standup-<roomId>`` and interview records
under ``standup-<roomId>-<memberId>``. Reads of missing keys return empty
defaults, never errors. Every write is awaited by the caller before the
operation that caused it completes, so nothing is left to an async flush.

Two implementations share the StandupStore contract:
- RedisStandupStore: JSON documents in Redis, room keys indexed in a set
- MemoryStandupStore: process-local dicts, for tests and local runs

RoomLocks serializes read-modify-write sequences on one room configuration.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import redis.asyncio as aioredis
import structlog

from src.standup.standups.schemas import InterviewRecord, RoomStandup

logger = structlog.get_logger(__name__)

KEY_PREFIX = "standup-"


def room_key(room_id: str) -> str:
    """Key of a room configuration: ``standup-<roomId>``."""
    return f"{KEY_PREFIX}{room_id}"


def interview_key(room_id: str, member_id: str) -> str:
    """Key of an interview record: ``standup-<roomId>-<memberId>``."""
    return f"{KEY_PREFIX}{room_id}-{member_id}"


# ── Contract ────────────────────────────────────────────────────────────────


class StandupStore(ABC):
    """Durable mapping of rooms and interview records.

    ``merge_*`` shallow-merges the given fields into the existing document
    (creating it when absent); ``save_*`` replaces the whole document.
    """

    async def load(self) -> None:
        """Load signal: returns once persisted state is readable."""
        return None

    @abstractmethod
    async def get_room(self, room_id: str) -> RoomStandup:
        """Return the room configuration, or an empty one."""

    @abstractmethod
    async def save_room(self, standup: RoomStandup) -> None:
        """Replace the room configuration."""

    @abstractmethod
    async def merge_room(self, room_id: str, fields: dict[str, Any]) -> RoomStandup:
        """Shallow-merge fields into the room configuration and return it."""

    @abstractmethod
    async def list_rooms(self) -> list[RoomStandup]:
        """Return every persisted room configuration."""

    @abstractmethod
    async def get_interview(self, room_id: str, member_id: str) -> InterviewRecord:
        """Return the member's interview record, or an empty one."""

    @abstractmethod
    async def save_interview(
        self, room_id: str, member_id: str, record: InterviewRecord
    ) -> None:
        """Replace the member's interview record."""

    @abstractmethod
    async def merge_interview(
        self, room_id: str, member_id: str, fields: dict[str, Any]
    ) -> InterviewRecord:
        """Shallow-merge answers into the member's record and return it."""


def _validate_rooms(
    docs: Iterable[tuple[str, dict[str, Any] | str | None]],
) -> list[RoomStandup]:
    """Validate room documents, skipping (and logging) corrupt ones.

    Documents may be decoded dicts or raw JSON strings; a string that is not
    valid JSON is corrupt like any other invalid document.
    """
    rooms: list[RoomStandup] = []
    for room_id, doc in docs:
        if doc is None:
            continue
        try:
            if isinstance(doc, str):
                rooms.append(RoomStandup.model_validate_json(doc))
            else:
                rooms.append(RoomStandup.model_validate(doc))
        except ValueError:
            logger.warning("standup_store.corrupt_room", room_id=room_id, exc_info=True)
    return rooms


def _merge_room_doc(room_id: str, current: dict[str, Any] | None, fields: dict[str, Any]) -> RoomStandup:
    doc = dict(current or {})
    doc.update(fields)
    doc["room_id"] = room_id
    return RoomStandup.model_validate(doc)


# ── In-process implementation ───────────────────────────────────────────────


class MemoryStandupStore(StandupStore):
    """Process-local store. Documents are kept serialized so callers never
    share mutable state with the store.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Any]] = {}
        self._interviews: dict[str, dict[str, Any]] = {}

    async def get_room(self, room_id: str) -> RoomStandup:
        doc = self._rooms.get(room_key(room_id))
        if doc is None:
            return RoomStandup(room_id=room_id)
        return RoomStandup.model_validate(doc)

    async def save_room(self, standup: RoomStandup) -> None:
        self._rooms[room_key(standup.room_id)] = standup.model_dump(mode="json")

    async def merge_room(self, room_id: str, fields: dict[str, Any]) -> RoomStandup:
        standup = _merge_room_doc(room_id, self._rooms.get(room_key(room_id)), fields)
        await self.save_room(standup)
        return standup

    async def list_rooms(self) -> list[RoomStandup]:
        return _validate_rooms(
            (doc.get("room_id", key), doc) for key, doc in sorted(self._rooms.items())
        )

    async def get_interview(self, room_id: str, member_id: str) -> InterviewRecord:
        doc = self._interviews.get(interview_key(room_id, member_id))
        return InterviewRecord.model_validate(doc or {})

    async def save_interview(
        self, room_id: str, member_id: str, record: InterviewRecord
    ) -> None:
        self._interviews[interview_key(room_id, member_id)] = record.model_dump(mode="json")

    async def merge_interview(
        self, room_id: str, member_id: str, fields: dict[str, Any]
    ) -> InterviewRecord:
        doc = dict(self._interviews.get(interview_key(room_id, member_id)) or {})
        doc.update(fields)
        record = InterviewRecord.model_validate(doc)
        await self.save_interview(room_id, member_id, record)
        return record


# ── Redis implementation ────────────────────────────────────────────────────


class RedisStandupStore(StandupStore):
    """Standup documents stored as JSON strings in Redis.

    Room keys are added to an index set on every room write so restore can
    enumerate rooms without SCAN.

    Args:
        redis_client: Async Redis client created with decode_responses=True.
        prefix: Optional namespace prepended to every key.
    """

    def __init__(self, redis_client: aioredis.Redis, prefix: str = "") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @property
    def _index_key(self) -> str:
        return self._key("standup:rooms")

    async def _get_doc(self, key: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def load(self) -> None:
        await self._redis.ping()
        count = await self._redis.scard(self._index_key)
        logger.info("standup_store.loaded", rooms=count)

    async def get_room(self, room_id: str) -> RoomStandup:
        doc = await self._get_doc(room_key(room_id))
        if doc is None:
            return RoomStandup(room_id=room_id)
        return RoomStandup.model_validate(doc)

    async def save_room(self, standup: RoomStandup) -> None:
        key = room_key(standup.room_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._key(key), standup.model_dump_json())
            pipe.sadd(self._index_key, standup.room_id)
            await pipe.execute()

    async def merge_room(self, room_id: str, fields: dict[str, Any]) -> RoomStandup:
        standup = _merge_room_doc(room_id, await self._get_doc(room_key(room_id)), fields)
        await self.save_room(standup)
        return standup

    async def list_rooms(self) -> list[RoomStandup]:
        room_ids = sorted(await self._redis.smembers(self._index_key))
        docs = [
            (room_id, await self._redis.get(self._key(room_key(room_id))))
            for room_id in room_ids
        ]
        return _validate_rooms(docs)

    async def get_interview(self, room_id: str, member_id: str) -> InterviewRecord:
        doc = await self._get_doc(interview_key(room_id, member_id))
        return InterviewRecord.model_validate(doc or {})

    async def save_interview(
        self, room_id: str, member_id: str, record: InterviewRecord
    ) -> None:
        await self._redis.set(
            self._key(interview_key(room_id, member_id)),
            record.model_dump_json(),
        )

    async def merge_interview(
        self, room_id: str, member_id: str, fields: dict[str, Any]
    ) -> InterviewRecord:
        doc = await self._get_doc(interview_key(room_id, member_id)) or {}
        doc.update(fields)
        record = InterviewRecord.model_validate(doc)
        await self.save_interview(room_id, member_id, record)
        return record


# ── Per-room serialization ──────────────────────────────────────────────────


class RoomLocks:
    """One asyncio.Lock per room. Different rooms never contend."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def __call__(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock
