"""Startup recovery: replay the state file into the routing table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

from loguru import logger

from mirror.gateway.router import EndpointRef, RelayRecord, StoredRelay
from mirror.gateway.store import ConfigStore

RecoveryState = Literal["loading", "ready"]


class RelayCreator(Protocol):
    async def __call__(
        self,
        source: str,
        destination: str,
        mode: str,
        *,
        endpoint: EndpointRef | None = None,
        restoring: bool = False,
        start_time: str | None = None,
    ) -> RelayRecord: ...


@dataclass
class RecoveryReport:
    restored: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # source id -> reason
    reprovisioned: list[str] = field(default_factory=list)  # spoofed entries stored without webhook

    @property
    def changed(self) -> bool:
        return bool(self.reprovisioned)


class RecoveryOrchestrator:
    """Loading -> Ready. Each stored relay goes through the normal create path with restoring=True."""

    def __init__(self, store: ConfigStore, create: RelayCreator) -> None:
        self._store = store
        self._create = create
        self.state: RecoveryState = "loading"

    @property
    def is_ready(self) -> bool:
        return self.state == "ready"

    async def run(self) -> RecoveryReport:
        self.state = "loading"
        report = RecoveryReport()
        logger.info("[Mirror System] Initializing...")
        saved = self._store.load()

        for key, entry in saved.items():
            try:
                stored = StoredRelay.from_dict(entry, key=key)
                await self._create(
                    stored.source_id,
                    stored.target_id,
                    stored.mode,
                    endpoint=stored.endpoint,
                    restoring=True,
                    start_time=stored.start_time,
                )
            except Exception as exc:
                logger.error("[Mirror] Failed to restore mirror for {}: {}", key, exc)
                report.failed[str(key)] = str(exc)
                continue
            report.restored.append(stored.source_id)
            if stored.mode == "spoofed" and stored.endpoint is None:
                report.reprovisioned.append(stored.source_id)

        self.state = "ready"
        logger.info(
            "[Mirror System] Restored {} mirrors{}.",
            len(report.restored),
            f", {len(report.failed)} failed" if report.failed else "",
        )
        return report
