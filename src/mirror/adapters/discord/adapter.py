"""Discord adapter: bot session, inbound message events, channel/webhook primitives."""

from __future__ import annotations

import asyncio
import contextlib
import os
from typing import TYPE_CHECKING, Any

import aiohttp
import discord
from cachetools import TTLCache
from discord import Intents, Message
from discord.abc import Messageable
from discord.webhook import Webhook
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from mirror.adapters.base import AdapterBase, EndpointInfo
from mirror.adapters.discord import webhook as discord_webhook
from mirror.config import cfg
from mirror.events import MirrorPayload, message_in
from mirror.gateway.router import EndpointRef

if TYPE_CHECKING:
    from mirror.gateway.bus import Bus

# Transient errors only: 5xx and connection trouble. 404/403 mean the channel is not usable.
FETCH_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(
        (
            discord.DiscordServerError,
            aiohttp.ClientConnectionError,
            asyncio.TimeoutError,
        )
    ),
    reraise=True,
)


def message_to_event(message: Message) -> tuple[str, object]:
    """discord.Message -> MessageIn."""
    author = message.author
    avatar = getattr(author, "display_avatar", None)
    return message_in(
        channel_id=str(message.channel.id),
        message_id=str(message.id),
        author_id=str(author.id),
        author_display=author.display_name or author.name,
        content=message.content or None,
        attachments=[a.url for a in message.attachments],
        embeds=[e.to_dict() for e in message.embeds],
        avatar_url=str(avatar.url) if avatar else None,
        webhook_id=str(message.webhook_id) if message.webhook_id else None,
        is_system=message.is_system(),
    )


class DiscordAdapter(AdapterBase):
    """Discord adapter: publishes MessageIn on the bus and implements ChatPlatform."""

    def __init__(self, bus: Bus, *, token: str | None = None) -> None:
        self._bus = bus
        self._token = token
        self._bot: discord.Client | None = None
        self._session: aiohttp.ClientSession | None = None
        self._bot_task: asyncio.Task | None = None
        self._channel_cache: TTLCache[str, Any] = TTLCache(maxsize=512, ttl=cfg.channel_cache_ttl_seconds)
        self._webhook_cache: TTLCache[str, Webhook] = TTLCache(maxsize=256, ttl=86400)

    @property
    def name(self) -> str:
        return "discord"

    @property
    def self_id(self) -> str | None:
        if self._bot and self._bot.user:
            return str(self._bot.user.id)
        return None

    @property
    def self_avatar_url(self) -> str | None:
        if self._bot and self._bot.user:
            return str(self._bot.user.display_avatar.url)
        return None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    @FETCH_RETRY
    async def _fetch_channel_raw(self, channel_id: int) -> Any:
        if self._bot is None:
            raise RuntimeError("Discord client is not running")
        return self._bot.get_channel(channel_id) or await self._bot.fetch_channel(channel_id)

    async def fetch_channel(self, channel_id: str) -> Any | None:
        """Resolve a messageable channel. None when unknown, forbidden or unreachable."""
        cached = self._channel_cache.get(str(channel_id))
        if cached is not None:
            return cached
        if not self._bot:
            return None
        try:
            channel = await self._fetch_channel_raw(int(channel_id))
        except ValueError:
            return None
        except (discord.NotFound, discord.Forbidden, discord.InvalidData):
            return None
        except (discord.HTTPException, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Could not fetch Discord channel {}: {}", channel_id, exc)
            return None
        if channel is None or not isinstance(channel, Messageable):
            return None
        self._channel_cache[str(channel_id)] = channel
        return channel

    async def _channel_or_raise(self, channel_id: str) -> Any:
        channel = await self.fetch_channel(channel_id)
        if channel is None:
            raise LookupError(f"Discord channel {channel_id} not found")
        return channel

    async def list_endpoints(self, channel_id: str) -> list[EndpointInfo]:
        channel = await self._channel_or_raise(channel_id)
        if not hasattr(channel, "webhooks"):
            return []
        hooks = await channel.webhooks()
        return [EndpointInfo(id=str(wh.id), name=wh.name, token=wh.token) for wh in hooks]

    async def create_endpoint(
        self,
        channel_id: str,
        *,
        name: str,
        avatar_url: str | None,
        reason: str,
    ) -> EndpointRef:
        channel = await self._channel_or_raise(channel_id)
        if not hasattr(channel, "create_webhook"):
            raise TypeError(f"Discord channel {channel_id} does not support webhooks")
        avatar: bytes | None = None
        if avatar_url:
            try:
                async with self._require_session().get(avatar_url) as resp:
                    if resp.status == 200:
                        avatar = await resp.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.debug("Could not fetch webhook avatar {}: {}", avatar_url, exc)
        hook = await channel.create_webhook(name=name, avatar=avatar, reason=reason)
        if not hook.token:
            raise RuntimeError(f"Webhook {hook.id} was created without a token")
        return EndpointRef(id=str(hook.id), token=str(hook.token))

    def _webhook_for(self, endpoint: EndpointRef) -> Webhook:
        webhook = self._webhook_cache.get(endpoint.id)
        if webhook is None or webhook.token != endpoint.token:
            webhook = Webhook.partial(int(endpoint.id), endpoint.token, session=self._require_session())
            self._webhook_cache[endpoint.id] = webhook
        return webhook

    async def send_direct(self, channel_id: str, payload: MirrorPayload) -> None:
        channel = await self._channel_or_raise(channel_id)
        files, links = await discord_webhook.fetch_files(
            self._require_session(), payload.attachments, cfg.attachment_max_bytes
        )
        for kw in discord_webhook.build_send_kwargs(payload, files, links):
            await channel.send(**kw)

    async def send_via_endpoint(self, endpoint: EndpointRef, payload: MirrorPayload) -> None:
        webhook = self._webhook_for(endpoint)
        files, links = await discord_webhook.fetch_files(
            self._require_session(), payload.attachments, cfg.attachment_max_bytes
        )
        identity: dict[str, Any] = {}
        if payload.username:
            identity["username"] = discord_webhook._ensure_valid_username(payload.username)
        if payload.avatar_url:
            identity["avatar_url"] = payload.avatar_url
        for kw in discord_webhook.build_send_kwargs(payload, files, links):
            await webhook.send(wait=True, **identity, **kw)

    async def _on_message(self, message: Message) -> None:
        """Publish every guild message; the mirror listener decides what it wants."""
        _, evt = message_to_event(message)
        self._bus.publish("discord", evt)

    async def wait_until_ready(self) -> bool:
        """Wait for login. Returns False if the client stopped first (e.g. bad token)."""
        if not self._bot or not self._bot_task:
            return False
        ready = asyncio.create_task(self._bot.wait_until_ready())
        done, _ = await asyncio.wait({ready, self._bot_task}, return_when=asyncio.FIRST_COMPLETED)
        if ready in done:
            return True
        ready.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ready
        exc = self._bot_task.exception() if not self._bot_task.cancelled() else None
        if exc:
            logger.error("Discord client stopped before ready: {}", exc)
        return False

    async def start(self) -> None:
        """Log in and start receiving events."""
        token = self._token or os.environ.get("DISCORD_TOKEN")
        if not token:
            logger.warning("DISCORD_TOKEN not set; Discord adapter disabled")
            return

        intents = Intents.default()
        intents.message_content = True
        intents.guilds = True

        bot = discord.Client(intents=intents)

        @bot.event
        async def on_ready() -> None:
            logger.info("Discord client ready: {}", bot.user)

        @bot.event
        async def on_message(message: Message) -> None:
            await self._on_message(message)

        self._bot = bot
        self._session = aiohttp.ClientSession()
        self._bot_task = asyncio.create_task(bot.start(token))

    async def stop(self) -> None:
        if self._bot:
            await self._bot.close()
        if self._bot_task:
            self._bot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._bot_task
        if self._session and not self._session.closed:
            await self._session.close()
        self._bot = None
        self._bot_task = None
        self._session = None
        self._channel_cache.clear()
        self._webhook_cache.clear()
