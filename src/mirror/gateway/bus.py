"""Event bus: platform adapters publish, the relay listener and other targets consume."""

from loguru import logger

from mirror.events import Dispatcher, EventTarget

__all__ = ["Bus", "EventTarget"]


class Bus:
    """Single dispatcher shared by the adapter and the mirror engine."""

    def __init__(self) -> None:
        self._dispatcher = Dispatcher()

    def register(self, target: EventTarget) -> None:
        """Register target once; a second register of the same target is ignored."""
        if target in self._dispatcher.targets:
            return
        self._dispatcher.register(target)

    def unregister(self, target: EventTarget) -> None:
        self._dispatcher.unregister(target)

    @property
    def targets(self) -> list[EventTarget]:
        return self._dispatcher.targets

    def publish(self, source: str, evt: object) -> int:
        """Publish evt from source. Returns how many targets took it."""
        delivered = self._dispatcher.dispatch(source, evt)
        if not delivered:
            logger.trace("No target accepted {} from {}", type(evt).__name__, source)
        return delivered
