"""Chat transport contract consumed by the standup core.

The core never talks to a chat platform directly. Anything able to post a
message to a room and to resolve a user's direct-message room can drive it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ChatTransport(Protocol):
    """Outbound side of a chat platform."""

    async def send(self, room_id: str, text: str) -> None:
        """Post ``text`` to ``room_id``."""
        ...

    async def get_direct_message_room(self, user_id: str, display_name: str) -> str:
        """Return the id of the private room between the bot and the user."""
        ...
