"""Google Chat transport for the standup bot.

Provides service-account authentication, an async ChatTransport
implementation, and parsing of incoming Chat interaction events.
"""

from src.standup.services.gchat.auth import ChatAuthManager
from src.standup.services.gchat.chat import GoogleChatTransport
from src.standup.services.gchat.models import ChatMessage, parse_chat_event

__all__ = [
    "ChatAuthManager",
    "ChatMessage",
    "GoogleChatTransport",
    "parse_chat_event",
]
