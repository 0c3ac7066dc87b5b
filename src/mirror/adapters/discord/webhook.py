"""Discord send helpers: username limits, message kwargs, attachment fetching."""

from __future__ import annotations

import asyncio
import io
import posixpath
from typing import Any
from urllib.parse import unquote, urlparse

import aiohttp
from discord import AllowedMentions, Embed, File
from loguru import logger

from mirror.events import MirrorPayload

# Webhook username: 2-32 chars
MIN_USERNAME_LEN = 2
MAX_USERNAME_LEN = 32
MAX_CONTENT_LEN = 2000
MAX_EMBEDS = 10
MAX_FILES = 10
_ALLOWED_MENTIONS = AllowedMentions(everyone=False, roles=False)


def _ensure_valid_username(name: str) -> str:
    """Truncate or pad username to fit Discord webhook limits."""
    name = str(name)[:MAX_USERNAME_LEN]
    if len(name) < MIN_USERNAME_LEN:
        name = name + "_" * (MIN_USERNAME_LEN - len(name))
    return name


def _filename_from_url(url: str) -> str:
    name = posixpath.basename(unquote(urlparse(url).path))
    return name or "attachment"


async def fetch_files(
    session: aiohttp.ClientSession,
    urls: list[str],
    max_bytes: int,
) -> tuple[list[File], list[str]]:
    """Download attachment URLs for re-upload. Returns (files, urls that must be sent as links)."""
    files: list[File] = []
    links: list[str] = []
    for url in urls:
        if len(files) >= MAX_FILES:
            links.append(url)
            continue
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    logger.debug("Attachment {} returned HTTP {}", url, resp.status)
                    links.append(url)
                    continue
                if resp.content_length is not None and resp.content_length > max_bytes:
                    links.append(url)
                    continue
                data = b""
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    data += chunk
                    if len(data) > max_bytes:
                        break
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug("Could not fetch attachment {}: {}", url, exc)
            links.append(url)
            continue
        if len(data) > max_bytes:
            links.append(url)
            continue
        files.append(File(io.BytesIO(data), filename=_filename_from_url(url)))
    return files, links


def _pack_links(links: list[str]) -> list[str]:
    """Join links into as few messages as fit MAX_CONTENT_LEN."""
    chunks: list[str] = []
    current = ""
    for link in links:
        link = link[:MAX_CONTENT_LEN]
        if current and len(current) + 1 + len(link) > MAX_CONTENT_LEN:
            chunks.append(current)
            current = ""
        current = f"{current}\n{link}" if current else link
    if current:
        chunks.append(current)
    return chunks


def _fit_content(content: str, links: list[str]) -> tuple[str, list[str]]:
    """Text plus fallback links for the first message, and any follow-up messages.

    The text is cut before the links are appended so a link is never truncated.
    """
    if not links:
        return content[:MAX_CONTENT_LEN], []
    tail = "\n".join(links)
    if not content:
        first, *rest = _pack_links(links)
        return first, rest
    room = MAX_CONTENT_LEN - len(tail) - 1
    if room > 0:
        return f"{content[:room]}\n{tail}", []
    # Links alone fill a message: send them after the text
    return content[:MAX_CONTENT_LEN], _pack_links(links)


def build_send_kwargs(payload: MirrorPayload, files: list[File], links: list[str]) -> list[dict[str, Any]]:
    """Keyword arguments for TextChannel.send / Webhook.send, one dict per message.

    The first message carries text, files and embeds. Any further messages hold
    fallback links that did not fit beside the text.
    """
    content, overflow = _fit_content(payload.content or "", links)
    kw: dict[str, Any] = {"allowed_mentions": _ALLOWED_MENTIONS}
    if content:
        kw["content"] = content
    if files:
        kw["files"] = files
    if payload.embeds:
        kw["embeds"] = [Embed.from_dict(e) for e in payload.embeds[:MAX_EMBEDS]]
    return [kw, *({"allowed_mentions": _ALLOWED_MENTIONS, "content": chunk} for chunk in overflow)]
