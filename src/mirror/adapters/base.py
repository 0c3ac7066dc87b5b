"""Platform boundary: what the mirror engine needs from a chat client."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from mirror.events import MirrorPayload
    from mirror.gateway.router import EndpointRef


@dataclass(frozen=True)
class EndpointInfo:
    """A webhook found on a channel. token is None when the account cannot read it."""

    id: str
    name: str | None
    token: str | None


class ChatPlatform(Protocol):
    """Capabilities the engine uses. Transport-agnostic."""

    @property
    def self_id(self) -> str | None:
        """Operating account id (None before login)."""
        ...

    @property
    def self_avatar_url(self) -> str | None:
        """Operating account avatar, used as the default for new webhooks."""
        ...

    async def fetch_channel(self, channel_id: str) -> Any | None:
        """Resolve a channel by id; None when unknown or inaccessible."""
        ...

    async def list_endpoints(self, channel_id: str) -> list[EndpointInfo]:
        """Webhooks already present on the channel."""
        ...

    async def create_endpoint(
        self,
        channel_id: str,
        *,
        name: str,
        avatar_url: str | None,
        reason: str,
    ) -> EndpointRef:
        """Create a webhook on the channel."""
        ...

    async def send_direct(self, channel_id: str, payload: MirrorPayload) -> None:
        """Post payload as the operating account."""
        ...

    async def send_via_endpoint(self, endpoint: EndpointRef, payload: MirrorPayload) -> None:
        """Post payload through a webhook using payload.username / payload.avatar_url."""
        ...


class AdapterBase(ABC):
    """Thin base for platform adapters: lifecycle plus name."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter identifier (e.g. 'discord')."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the adapter (connect, register handlers)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the adapter (disconnect, cleanup)."""
        ...
