"""Pydantic schemas for standup state: rooms, rules, interview records, messages.

Room configurations and interview records are the documents written through
the persistence bridge. Recurrence rules are immutable; a new schedule
replaces the previous rule wholesale.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Weekday alphabet used by the schedule dialog, index + 1 is the ordinal
# (Monday, Tuesday, Wednesday, thuRsday, Friday, Saturday, sunDay).
WEEKDAY_LETTERS = "MTWRFSD"

# Cron day names for ordinals 1..7
WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Interview question keys, in the order they are asked
QUESTION_KEYS = ("yday", "today", "blockers")


class RecurrenceRule(BaseModel):
    """When a room's standup auto-triggers: minute, hour and a weekday set.

    Weekdays are ordinals 1 (Monday) through 7 (Sunday), stored sorted and
    deduplicated.
    """

    model_config = ConfigDict(frozen=True)

    minute: int = Field(ge=0, le=59)
    hour: int = Field(ge=0, le=23)
    weekdays: tuple[int, ...]

    @field_validator("weekdays")
    @classmethod
    def _normalize_weekdays(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            msg = "weekdays must not be empty"
            raise ValueError(msg)
        for day in value:
            if day < 1 or day > 7:
                msg = f"weekday ordinal {day} out of range 1-7"
                raise ValueError(msg)
        return tuple(sorted(set(value)))

    @property
    def day_of_week(self) -> str:
        """Cron day-of-week expression, e.g. ``mon,wed,fri``."""
        return ",".join(WEEKDAY_NAMES[day - 1] for day in self.weekdays)

    @property
    def cronstamp(self) -> str:
        """Six-field cron stamp shown to users, e.g. ``0 0 9 * * 1,3,5``."""
        days = ",".join(str(day) for day in self.weekdays)
        return f"0 {self.minute} {self.hour} * * {days}"


class RoomStandup(BaseModel):
    """Standup configuration of one room.

    Attributes:
        room_id: Chat room identifier.
        members: Member id -> display name.
        rule: Recurrence rule, None when not scheduled.
        job_key: Key of the scheduler job armed for the rule, None when not
            scheduled. Informational only; job handles are never persisted.
    """

    room_id: str
    members: dict[str, str] = Field(default_factory=dict)
    rule: RecurrenceRule | None = None
    job_key: str | None = None


class InterviewRecord(BaseModel):
    """Answers of one member for the current standup cycle."""

    yday: str | None = None
    today: str | None = None
    blockers: str | None = None

    @property
    def answered(self) -> int:
        return sum(1 for key in QUESTION_KEYS if getattr(self, key) is not None)


class IncomingMessage(BaseModel):
    """A chat message delivered to the bot by the transport.

    Attributes:
        user_id: Sender identifier.
        user_name: Sender display name.
        room_id: Room (space) the message was posted in.
        text: Raw message text, including any leading bot mention.
        is_direct: True when the room is a direct-message room with the bot.
    """

    user_id: str
    user_name: str
    room_id: str
    text: str
    is_direct: bool = False
