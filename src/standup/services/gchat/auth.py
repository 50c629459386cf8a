"""Google Chat authentication with service account credentials.

The Chat service instance is built once and cached; building credentials
per request is slow and opens new HTTP connections.
"""

from __future__ import annotations

from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

# Google Chat scope for service account (bot)
CHAT_SCOPES = [
    "https://www.googleapis.com/auth/chat.bot",
]


class ChatAuthManager:
    """Builds and caches the Google Chat API v1 service for the bot account."""

    def __init__(self, service_account_file: str) -> None:
        self._service_account_file = service_account_file
        self._service: Any = None

    def _build_credentials(self) -> service_account.Credentials:
        return service_account.Credentials.from_service_account_file(
            self._service_account_file,
            scopes=CHAT_SCOPES,
        )

    def get_chat_service(self) -> Any:
        """Get a cached Google Chat API v1 service instance.

        Chat apps authenticate as the service account itself, so no user
        delegation is applied.

        Returns:
            Chat API Resource object.
        """
        if self._service is None:
            logger.info("building_chat_service")
            self._service = build("chat", "v1", credentials=self._build_credentials())
        return self._service
