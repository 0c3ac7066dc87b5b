"""Event types and dispatcher (typed events, central dispatcher)."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class MessageIn:
    """Inbound message event, platform-agnostic."""

    channel_id: str
    message_id: str
    author_id: str
    author_display: str
    content: str | None
    attachments: list[str] = field(default_factory=list)  # URLs, arrival order
    embeds: list[dict[str, Any]] = field(default_factory=list)
    avatar_url: str | None = None
    webhook_id: str | None = None  # Set when a webhook produced the message
    is_system: bool = False  # Joins, pins, boosts, ...


@dataclass
class MirrorPayload:
    """Normalized message payload handed to a platform send primitive. Never persisted."""

    content: str | None
    attachments: list[str] = field(default_factory=list)
    embeds: list[dict[str, Any]] = field(default_factory=list)
    username: str | None = None  # Spoof identity (spoofed delivery only)
    avatar_url: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.content and not self.attachments and not self.embeds


@dataclass
class ConfigReload:
    """Config was reloaded (e.g. SIGHUP)."""

    pass


class EventTarget(Protocol):
    """Bus target interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may schedule async work)."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name  # type: ignore[attr-defined]
        return wrapper

    return decorator


@event("message_in")
def message_in(
    channel_id: str,
    message_id: str,
    author_id: str,
    author_display: str,
    content: str | None,
    *,
    attachments: list[str] | None = None,
    embeds: list[dict[str, Any]] | None = None,
    avatar_url: str | None = None,
    webhook_id: str | None = None,
    is_system: bool = False,
) -> MessageIn:
    return MessageIn(
        channel_id=channel_id,
        message_id=message_id,
        author_id=author_id,
        author_display=author_display,
        content=content,
        attachments=list(attachments or []),
        embeds=list(embeds or []),
        avatar_url=avatar_url,
        webhook_id=webhook_id,
        is_system=is_system,
    )


@event("config_reload")
def config_reload() -> ConfigReload:
    return ConfigReload()


class Dispatcher:
    """Central event dispatcher; targets filter by type and receive events."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register an event target."""
        self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister an event target."""
        if target in self._targets:
            self._targets.remove(target)

    @property
    def targets(self) -> list[EventTarget]:
        """Snapshot of registered targets."""
        return list(self._targets)

    def dispatch(self, source: str, evt: object) -> int:
        """Dispatch event to all targets that accept it. Returns the number that took it."""
        from loguru import logger

        delivered = 0
        for target in list(self._targets):
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
                    delivered += 1
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
        return delivered
