"""Pydantic schemas for Google Chat messages and incoming events."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from src.standup.standups.schemas import IncomingMessage


class ChatMessage(BaseModel):
    """Chat message to send via Google Chat API."""

    space_name: str
    text: str


def parse_chat_event(payload: dict[str, Any]) -> IncomingMessage | None:
    """Convert a Google Chat interaction event into an IncomingMessage.

    Only ``MESSAGE`` events carry user text; every other event type
    (ADDED_TO_SPACE, CARD_CLICKED, ...) returns None.
    """
    if payload.get("type") != "MESSAGE":
        return None

    message = payload.get("message") or {}
    sender = message.get("sender") or payload.get("user") or {}
    space = message.get("space") or payload.get("space") or {}

    user_id = sender.get("name", "")
    room_id = space.get("name", "")
    if not user_id or not room_id:
        return None

    is_direct = space.get("type") == "DM" or space.get("spaceType") == "DIRECT_MESSAGE"
    return IncomingMessage(
        user_id=user_id,
        user_name=sender.get("displayName") or user_id,
        room_id=room_id,
        text=message.get("text", ""),
        is_direct=is_direct,
    )
