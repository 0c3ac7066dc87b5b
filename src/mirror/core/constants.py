"""Delivery mode constants."""

from __future__ import annotations

from typing import Literal

DeliveryMode = Literal["direct", "spoofed"]
MODES: tuple[DeliveryMode, ...] = ("direct", "spoofed")

# Spellings written by older state files
LEGACY_MODES: dict[str, DeliveryMode] = {"normal": "direct", "webhook": "spoofed"}

DEFAULT_ENDPOINT_NAME = "Mirror Bot"
DEFAULT_ENDPOINT_REASON = "Mirror System"
DEFAULT_STATE_FILE = "data/mirror_config.json"
DISCORD_ASSET_PATTERN = r"https://cdn\.discordapp\.com/\S+"
