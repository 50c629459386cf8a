"""Google Chat event webhook.

Google Chat posts every interaction event here. MESSAGE events are handed
to the standup bot; the bot answers asynchronously through the Chat API,
so the webhook itself always returns an empty 200 response.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request

from src.standup.config import get_settings
from src.standup.services.gchat.models import parse_chat_event

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("/events")
async def receive_chat_event(request: Request) -> dict:
    """Receive a Google Chat interaction event.

    Returns 200 with an empty body in every case, including processing
    errors, so Google Chat does not retry or show an error card.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("chat_webhook.invalid_json")
        return {}

    webhook_token = get_settings().CHAT_WEBHOOK_TOKEN
    if webhook_token and request.headers.get("X-Chat-Token", "") != webhook_token:
        logger.warning("chat_webhook.invalid_token", event_type=payload.get("type"))
        return {}

    message = parse_chat_event(payload)
    if message is None:
        logger.debug("chat_webhook.ignored_event", event_type=payload.get("type"))
        return {}

    runtime = getattr(request.app.state, "standup", None)
    if runtime is None:
        logger.warning("chat_webhook.runtime_unavailable", room_id=message.room_id)
        return {}

    try:
        await runtime.bot.handle_message(message)
    except Exception:
        logger.error(
            "chat_webhook.handling_failed",
            room_id=message.room_id,
            user_id=message.user_id,
            exc_info=True,
        )
    return {}
