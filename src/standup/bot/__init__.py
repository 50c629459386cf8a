"""Standup chat bot: command dispatch and component wiring."""

from src.standup.bot.commands import StandupBot
from src.standup.bot.runtime import StandupRuntime, build_runtime

__all__ = ["StandupBot", "StandupRuntime", "build_runtime"]
