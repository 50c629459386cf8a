"""Google Chat implementation of the standup ChatTransport.

All Google API calls are wrapped in asyncio.to_thread() to avoid blocking
the event loop, and retried with exponential backoff on transient errors.
"""

from __future__ import annotations

import asyncio

import structlog
from googleapiclient.errors import HttpError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.standup.services.gchat.auth import ChatAuthManager
from src.standup.services.gchat.models import ChatMessage

logger = structlog.get_logger(__name__)


class GoogleChatTransport:
    """Sends standup messages to Google Chat spaces.

    Room ids are space resource names (``spaces/AAAA``) and user ids are
    user resource names (``users/1234``).
    """

    def __init__(self, auth_manager: ChatAuthManager) -> None:
        self._auth = auth_manager
        self._dm_cache: dict[str, str] = {}

    async def send(self, room_id: str, text: str) -> None:
        await self.send_message(ChatMessage(space_name=room_id, text=text))

    @retry(
        retry=retry_if_exception_type(HttpError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def send_message(self, message: ChatMessage) -> None:
        """Post a plain-text message to a Google Chat space."""
        service = self._auth.get_chat_service()

        def _send() -> dict:
            return (
                service.spaces()
                .messages()
                .create(parent=message.space_name, body={"text": message.text})
                .execute()
            )

        logger.info("sending_chat_message", space=message.space_name)
        result = await asyncio.to_thread(_send)
        logger.debug("chat_message_sent", message_name=result.get("name", ""))

    @retry(
        retry=retry_if_exception_type(HttpError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
    )
    async def get_direct_message_room(self, user_id: str, display_name: str) -> str:
        """Resolve the DM space between the bot and a user.

        Results are cached per user; a DM space name never changes.
        """
        cached = self._dm_cache.get(user_id)
        if cached is not None:
            return cached

        service = self._auth.get_chat_service()

        def _find() -> dict:
            return service.spaces().findDirectMessage(name=user_id).execute()

        logger.info("finding_direct_message_space", user_id=user_id, display_name=display_name)
        space = await asyncio.to_thread(_find)
        space_name = space.get("name", "")
        if not space_name:
            msg = f"No direct message space with {display_name} ({user_id})"
            raise LookupError(msg)

        self._dm_cache[user_id] = space_name
        return space_name
