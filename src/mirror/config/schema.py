"""Config schema and accessor."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from loguru import logger

from mirror.core.constants import (
    DEFAULT_ENDPOINT_NAME,
    DEFAULT_ENDPOINT_REASON,
    DEFAULT_STATE_FILE,
    DISCORD_ASSET_PATTERN,
)
from mirror.core.errors import MirrorConfigurationError

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = ("MIRROR_STATE_FILE",)

# Discord caps bot uploads at 8 MiB on unboosted servers
DEFAULT_ATTACHMENT_MAX_BYTES = 8 * 1024 * 1024


def _load_env_overrides() -> dict[str, str]:
    """Load env overrides once per reload."""
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


class Config:
    """Config accessor with attribute-style access for nested keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload)."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug("Config reloaded: state file {}", self.state_file)

    def _validate(self) -> None:
        """Validate config structure; raise MirrorConfigurationError on failure."""
        filters = self._data.get("content_filter_regex")
        if filters is not None and not isinstance(filters, list):
            raise MirrorConfigurationError(
                "content_filter_regex must be a list",
                code="invalid_content_filter",
                details={"type": type(filters).__name__},
            )
        pattern = self._data.get("asset_url_pattern")
        if pattern is not None:
            try:
                re.compile(str(pattern))
            except re.error as exc:
                raise MirrorConfigurationError(
                    f"asset_url_pattern is not a valid regex: {exc}",
                    code="invalid_asset_pattern",
                    details={"pattern": pattern},
                    original_error=exc,
                ) from exc
        max_bytes = self._data.get("attachment_max_bytes")
        if max_bytes is not None:
            try:
                int(max_bytes)
            except (TypeError, ValueError) as exc:
                raise MirrorConfigurationError(
                    "attachment_max_bytes must be an integer",
                    code="invalid_attachment_max_bytes",
                    details={"value": max_bytes},
                    original_error=exc,
                ) from exc

    @property
    def raw(self) -> dict[str, Any]:
        """Raw config dict."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'discord.command_prefix')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def state_file(self) -> Path:
        """JSON document holding active mirrors (env: MIRROR_STATE_FILE)."""
        env_val = self._env.get("MIRROR_STATE_FILE", "").strip()
        if env_val:
            return Path(env_val)
        return Path(str(self._data.get("state_file") or DEFAULT_STATE_FILE))

    @property
    def endpoint_name(self) -> str:
        """Name given to webhooks the mirror creates."""
        return str(self._data.get("endpoint_name") or DEFAULT_ENDPOINT_NAME)

    @property
    def endpoint_reason(self) -> str:
        """Audit log reason for webhook creation."""
        return str(self._data.get("endpoint_reason") or DEFAULT_ENDPOINT_REASON)

    @property
    def asset_url_pattern(self) -> str:
        """Regex for platform asset links in message text that are relayed as attachments."""
        return str(self._data.get("asset_url_pattern") or DISCORD_ASSET_PATTERN)

    @property
    def attachment_max_bytes(self) -> int:
        """Attachments larger than this are relayed as links instead of re-uploaded."""
        return int(self._data.get("attachment_max_bytes", DEFAULT_ATTACHMENT_MAX_BYTES))

    @property
    def channel_cache_ttl_seconds(self) -> int:
        """TTL for resolved channel objects."""
        return int(self._data.get("channel_cache_ttl_seconds", 300))

    @property
    def content_filter_regex(self) -> list[str]:
        """Regex patterns; messages matching any are not mirrored."""
        val = self._data.get("content_filter_regex")
        if isinstance(val, list):
            return [str(p) for p in val]
        return []


# Global config instance (set by __main__)
cfg: Config = Config({})
