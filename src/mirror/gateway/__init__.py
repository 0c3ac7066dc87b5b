"""Gateway: event bus, routing table, pipeline, engine."""

from mirror.gateway.bus import Bus
from mirror.gateway.engine import MirrorEngine
from mirror.gateway.router import RoutingTable
from mirror.gateway.store import ConfigStore

__all__ = ["Bus", "ConfigStore", "MirrorEngine", "RoutingTable"]
