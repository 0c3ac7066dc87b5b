"""Message pipeline: filter, normalize, deliver one inbound message."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

from mirror.config import cfg
from mirror.core.errors import DeliveryFailed
from mirror.events import MessageIn, MirrorPayload
from mirror.gateway.router import DirectDelivery, RelayRecord, SpoofedDelivery

if TYPE_CHECKING:
    from mirror.adapters.base import ChatPlatform


def should_relay(evt: MessageIn, self_id: str | None) -> bool:
    """Loop and noise filter. Runs before anything else touches the message."""
    if self_id is not None and evt.author_id == str(self_id):
        return False
    # Anything a webhook posted may be our own relayed output
    if evt.webhook_id:
        return False
    return not evt.is_system


def _content_matches_filter(content: str | None) -> bool:
    """Return True if content matches any content_filter_regex pattern."""
    patterns = cfg.content_filter_regex
    if not patterns or not content:
        return False
    for pat in patterns:
        try:
            if re.search(pat, content):
                return True
        except re.error:
            continue
    return False


def extract_payload(evt: MessageIn, asset_pattern: str | re.Pattern[str]) -> MirrorPayload:
    """Build the outbound payload: attachments, then asset links from the text not already attached."""
    files: list[str] = []
    for url in evt.attachments:
        if url not in files:
            files.append(url)

    content = evt.content or None
    if content:
        pattern = asset_pattern if isinstance(asset_pattern, re.Pattern) else re.compile(asset_pattern)
        for link in pattern.findall(content):
            if link not in files:
                files.append(link)

    return MirrorPayload(
        content=content,
        attachments=files,
        embeds=list(evt.embeds),
    )


class MessagePipeline:
    """Per-message work for one relay. Delivery errors stop here."""

    def __init__(
        self,
        platform: ChatPlatform,
        *,
        asset_pattern: str | None = None,
    ) -> None:
        self._platform = platform
        self._asset_pattern = asset_pattern

    @property
    def asset_pattern(self) -> str:
        """Explicit pattern, else cfg.asset_url_pattern as of now (follows reloads)."""
        return self._asset_pattern or cfg.asset_url_pattern

    async def handle(self, evt: MessageIn, record: RelayRecord) -> bool:
        """Relay evt according to record. Returns True when something was delivered."""
        if not should_relay(evt, self._platform.self_id):
            return False

        if _content_matches_filter(evt.content):
            logger.debug("Mirror: message {} in {} matched content filter", evt.message_id, evt.channel_id)
            return False

        payload = extract_payload(evt, self.asset_pattern)
        if isinstance(record.delivery, SpoofedDelivery):
            payload.username = evt.author_display
            payload.avatar_url = evt.avatar_url

        try:
            return await self.dispatch(payload, record)
        except DeliveryFailed as exc:
            logger.error(
                "Mirror: error processing message {} from {}: {}",
                evt.message_id,
                record.source_id,
                exc.original_error or exc,
            )
            return False

    async def dispatch(self, payload: MirrorPayload, record: RelayRecord) -> bool:
        """Send payload to record's destination. Empty payloads are never sent."""
        if payload.is_empty:
            return False

        delivery = record.delivery
        if not isinstance(delivery, (DirectDelivery, SpoofedDelivery)):
            raise TypeError(f"Unknown delivery variant: {delivery!r}")
        try:
            if isinstance(delivery, SpoofedDelivery):
                await self._platform.send_via_endpoint(delivery.endpoint, payload)
            else:
                await self._platform.send_direct(record.target_id, payload)
        except Exception as exc:
            raise DeliveryFailed(
                f"Delivery from {record.source_id} to {record.target_id} failed",
                code="delivery_failed",
                details={"source_id": record.source_id, "target_id": record.target_id, "mode": record.mode},
                original_error=exc,
            ) from exc
        logger.debug("Mirror: {} -> {} ({})", record.source_id, record.target_id, record.mode)
        return True
