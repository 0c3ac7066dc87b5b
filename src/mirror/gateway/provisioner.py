"""Webhook provisioning for spoofed relays."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from mirror.config import cfg
from mirror.core.errors import EndpointProvisioningFailed
from mirror.gateway.router import EndpointRef

if TYPE_CHECKING:
    from mirror.adapters.base import ChatPlatform, EndpointInfo


def select_endpoint(endpoints: list[EndpointInfo]) -> EndpointRef | None:
    """First webhook whose token we can read. Token-less webhooks cannot be posted to."""
    for info in endpoints:
        if info.token:
            return EndpointRef(id=str(info.id), token=str(info.token))
    return None


class EndpointProvisioner:
    """Finds or creates one usable webhook per destination channel and caches its credentials."""

    def __init__(
        self,
        platform: ChatPlatform,
        *,
        name: str | None = None,
        reason: str | None = None,
    ) -> None:
        self._platform = platform
        # None: read from cfg at creation time so a reload applies
        self._name = name
        self._reason = reason
        self._known: dict[str, EndpointRef] = {}
        self.provisioning_calls = 0

    def cached(self, destination: str) -> EndpointRef | None:
        return self._known.get(str(destination))

    def forget(self, destination: str) -> None:
        self._known.pop(str(destination), None)

    async def provision(self, destination: str, known: EndpointRef | None = None) -> EndpointRef:
        """Return a webhook reference for destination.

        A known reference (from the state file) is trusted without touching the platform.
        """
        destination = str(destination)
        if known is not None:
            self._known[destination] = known
            return known

        cached = self._known.get(destination)
        if cached is not None:
            logger.debug("Reusing cached webhook {} for channel {}", cached.id, destination)
            return cached

        self.provisioning_calls += 1
        try:
            endpoints = await self._platform.list_endpoints(destination)
        except Exception as exc:
            logger.warning("Could not list webhooks for channel {}: {}", destination, exc)
            endpoints = []

        ref = select_endpoint(endpoints)
        if ref is not None:
            logger.info("Reusing webhook {} for channel {}", ref.id, destination)
        else:
            try:
                ref = await self._platform.create_endpoint(
                    destination,
                    name=self._name or cfg.endpoint_name,
                    avatar_url=self._platform.self_avatar_url,
                    reason=self._reason or cfg.endpoint_reason,
                )
            except Exception as exc:
                raise EndpointProvisioningFailed(
                    "Failed to create webhook. Check permissions in target channel.",
                    code="webhook_create_failed",
                    details={"channel_id": destination},
                    original_error=exc,
                ) from exc
            logger.info("Created webhook {} for channel {}", ref.id, destination)

        self._known[destination] = ref
        return ref
