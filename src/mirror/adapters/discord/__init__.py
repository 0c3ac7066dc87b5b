"""Discord adapter package."""

from mirror.adapters.discord.adapter import DiscordAdapter
from mirror.adapters.discord.webhook import _ensure_valid_username

__all__ = ["DiscordAdapter", "_ensure_valid_username"]
