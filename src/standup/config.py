"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Redis (persistence bridge)
    REDIS_URL: str = "redis://localhost:6379/0"
    STANDUP_KEY_PREFIX: str = ""

    # Standup behaviour (timeouts in milliseconds)
    STANDUP_TIMEOUT: int = 30 * 60 * 1000
    SCHEDULE_DIALOG_TIMEOUT: int = 30 * 1000
    STANDUP_MAX_HOUR: int = 23
    SCHEDULER_TIMEZONE: str = "UTC"

    # Name the bot answers to ("hubot standup join")
    BOT_NAME: str = "hubot"

    # Google Chat transport
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""  # Path to service account JSON key file
    GOOGLE_SERVICE_ACCOUNT_JSON_B64: str = ""  # For containerized deployments
    CHAT_WEBHOOK_TOKEN: str = ""  # Optional shared token checked on incoming events

    # Monitoring
    SENTRY_DSN: str = ""

    @property
    def standup_timeout_seconds(self) -> float:
        return self.STANDUP_TIMEOUT / 1000

    @property
    def schedule_dialog_timeout_seconds(self) -> float:
        return self.SCHEDULE_DIALOG_TIMEOUT / 1000

    def get_service_account_path(self) -> str | None:
        """Return path to Google service account JSON file.

        Prefers GOOGLE_SERVICE_ACCOUNT_FILE (direct path) if set.
        Falls back to decoding GOOGLE_SERVICE_ACCOUNT_JSON_B64 into a temp file
        for containerized deployments where mounting a file is impractical.
        Returns None if neither is configured.
        """
        if self.GOOGLE_SERVICE_ACCOUNT_FILE:
            return self.GOOGLE_SERVICE_ACCOUNT_FILE
        if self.GOOGLE_SERVICE_ACCOUNT_JSON_B64:
            import base64
            import os
            import tempfile

            decoded = base64.b64decode(self.GOOGLE_SERVICE_ACCOUNT_JSON_B64)
            tmp_path = os.path.join(tempfile.gettempdir(), "gcp-service-account.json")
            with open(tmp_path, "wb") as f:
                f.write(decoded)
            return tmp_path
        return None


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
