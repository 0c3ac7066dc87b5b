"""Mirror engine: command surface over routing table, provisioner, store and listener."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from mirror.core.errors import DuplicateRelay, InvalidChannel, PersistenceFailed
from mirror.gateway.listener import RelayListener
from mirror.gateway.pipeline import MessagePipeline
from mirror.gateway.provisioner import EndpointProvisioner
from mirror.gateway.recovery import RecoveryOrchestrator, RecoveryReport
from mirror.gateway.router import (
    Delivery,
    DirectDelivery,
    EndpointRef,
    RelayRecord,
    RelaySummary,
    RoutingTable,
    SpoofedDelivery,
    parse_mode,
)
from mirror.gateway.store import ConfigStore

if TYPE_CHECKING:
    from mirror.adapters.base import ChatPlatform
    from mirror.gateway.bus import Bus


class MirrorEngine:
    """Owns the relays. The command layer calls create_relay / remove_relay / list_relays."""

    def __init__(
        self,
        bus: Bus,
        platform: ChatPlatform,
        store: ConfigStore,
        *,
        table: RoutingTable | None = None,
        provisioner: EndpointProvisioner | None = None,
        pipeline: MessagePipeline | None = None,
    ) -> None:
        self._bus = bus
        self._platform = platform
        self._store = store
        self.table = table if table is not None else RoutingTable()
        self.provisioner = provisioner if provisioner is not None else EndpointProvisioner(platform)
        self.pipeline = pipeline if pipeline is not None else MessagePipeline(platform)
        self.listener = RelayListener(self.table, self.pipeline)
        self.recovery = RecoveryOrchestrator(store, self.create_relay)
        self._lock = asyncio.Lock()
        self._listening = False

    async def create_relay(
        self,
        source: str,
        destination: str,
        mode: str,
        *,
        endpoint: EndpointRef | None = None,
        restoring: bool = False,
        start_time: str | None = None,
    ) -> RelayRecord:
        """Start mirroring source into destination.

        Raises DuplicateRelay, InvalidChannel, InvalidMode or EndpointProvisioningFailed;
        nothing is added or saved when it raises.
        """
        source = str(source)
        destination = str(destination)
        delivery_mode = parse_mode(mode)

        async with self._lock:
            if source in self.table:
                raise DuplicateRelay(
                    "Mirror already active for this source channel.",
                    code="duplicate_relay",
                    details={"source_id": source},
                )
            if source == destination:
                raise InvalidChannel(
                    "Source and target channel must differ.",
                    code="same_channel",
                    details={"source_id": source},
                )
            if await self._platform.fetch_channel(source) is None:
                raise InvalidChannel("Invalid Source Channel.", code="invalid_source", details={"source_id": source})
            if await self._platform.fetch_channel(destination) is None:
                raise InvalidChannel(
                    "Invalid Target Channel.",
                    code="invalid_target",
                    details={"target_id": destination},
                )

            delivery: Delivery
            if delivery_mode == "spoofed":
                ref = await self.provisioner.provision(destination, known=endpoint)
                delivery = SpoofedDelivery(ref)
            else:
                delivery = DirectDelivery()

            record = self.table.add(source, destination, delivery, start_time=start_time)
            if not restoring:
                self._save()

        logger.info("Mirror started: {} -> {} ({})", source, destination, record.mode)
        return record

    async def remove_relay(self, source: str) -> bool:
        """Stop mirroring source. Returns False when there was nothing to stop."""
        async with self._lock:
            removed = self.table.remove(str(source))
            if removed:
                self._save()
        if removed:
            logger.info("Mirror stopped: {}", source)
        return removed

    def list_relays(self) -> list[RelaySummary]:
        return self.table.list()

    def _save(self) -> None:
        """Persist the table. A failed write leaves the in-memory table authoritative."""
        try:
            self._store.save(self.table.snapshot())
        except PersistenceFailed as exc:
            logger.error("Error saving mirror config: {}", exc)

    async def start(self) -> RecoveryReport:
        """Restore saved relays, then subscribe to inbound messages."""
        report = await self.recovery.run()
        if report.changed:
            async with self._lock:
                self._save()
        if not self._listening:
            self._bus.register(self.listener)
            self._listening = True
        return report

    async def stop(self) -> None:
        if self._listening:
            self._bus.unregister(self.listener)
            self._listening = False
        await self.listener.cancel()
