"""Routing table: source channel -> relay record."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from loguru import logger

from mirror.core.constants import LEGACY_MODES, MODES, DeliveryMode
from mirror.core.errors import DuplicateRelay, InvalidMode, PersistenceFailed


def parse_mode(value: str) -> DeliveryMode:
    """Normalize a mode string. Accepts legacy 'normal'/'webhook' spellings."""
    mode = str(value).strip().lower()
    if mode in MODES:
        return mode  # type: ignore[return-value]
    if mode in LEGACY_MODES:
        return LEGACY_MODES[mode]
    raise InvalidMode(f"Unknown delivery mode: {value!r}", code="invalid_mode", details={"mode": value})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class EndpointRef:
    """Webhook id + token. Enough to post through the webhook without the bot session."""

    id: str
    token: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "token": self.token}


@dataclass(frozen=True)
class DirectDelivery:
    """Post as the operating account."""

    @property
    def mode(self) -> DeliveryMode:
        return "direct"


@dataclass(frozen=True)
class SpoofedDelivery:
    """Post through a webhook as the source author."""

    endpoint: EndpointRef

    @property
    def mode(self) -> DeliveryMode:
        return "spoofed"


Delivery = Union[DirectDelivery, SpoofedDelivery]


@dataclass(frozen=True)
class RelaySummary:
    """Relay as shown to the command layer. No credentials."""

    source_id: str
    target_id: str
    mode: DeliveryMode
    start_time: str

    def to_dict(self) -> dict[str, str]:
        return {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "mode": self.mode,
            "startTime": self.start_time,
        }


@dataclass(frozen=True)
class RelayRecord:
    """One relay. Never mutated; remove and recreate to change it."""

    source_id: str
    target_id: str
    delivery: Delivery
    start_time: str = field(default_factory=utc_now_iso)

    @property
    def mode(self) -> DeliveryMode:
        return self.delivery.mode

    @property
    def endpoint(self) -> EndpointRef | None:
        if isinstance(self.delivery, SpoofedDelivery):
            return self.delivery.endpoint
        return None

    def summary(self) -> RelaySummary:
        return RelaySummary(self.source_id, self.target_id, self.mode, self.start_time)

    def to_dict(self) -> dict[str, Any]:
        """Persisted form: {sourceId, targetId, mode, webhook, startTime}."""
        endpoint = self.endpoint
        return {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "mode": self.mode,
            "webhook": endpoint.to_dict() if endpoint else None,
            "startTime": self.start_time,
        }


@dataclass(frozen=True)
class StoredRelay:
    """Relay entry as read back from the state file, before it is re-established."""

    source_id: str
    target_id: str
    mode: DeliveryMode
    endpoint: EndpointRef | None
    start_time: str | None

    @classmethod
    def from_dict(cls, data: Any, *, key: str | None = None) -> StoredRelay:
        """Parse a persisted entry. Raises PersistenceFailed when the entry is unusable."""
        if not isinstance(data, dict):
            raise PersistenceFailed(
                f"Relay entry {key!r} is not an object",
                code="malformed_entry",
                details={"source_id": key},
            )
        source_id = str(data.get("sourceId") or key or "")
        target_id = str(data.get("targetId") or "")
        if not source_id or not target_id:
            raise PersistenceFailed(
                f"Relay entry {key!r} is missing sourceId or targetId",
                code="malformed_entry",
                details={"source_id": key},
            )
        try:
            mode = parse_mode(data.get("mode") or "direct")
        except InvalidMode as exc:
            raise PersistenceFailed(
                str(exc),
                code="malformed_entry",
                details={"source_id": source_id},
                original_error=exc,
            ) from exc

        endpoint: EndpointRef | None = None
        hook = data.get("webhook")
        if mode == "spoofed" and isinstance(hook, dict) and hook.get("id") and hook.get("token"):
            endpoint = EndpointRef(id=str(hook["id"]), token=str(hook["token"]))
        start_time = data.get("startTime")
        return cls(
            source_id=source_id,
            target_id=target_id,
            mode=mode,
            endpoint=endpoint,
            start_time=str(start_time) if start_time else None,
        )


class RoutingTable:
    """Authoritative in-memory map of relays. At most one relay per source channel.

    Writers serialize on a lock and swap in a new dict; readers use whatever dict is
    current, so lookups from the event path never wait on a writer.
    """

    def __init__(self) -> None:
        self._records: dict[str, RelayRecord] = {}
        self._lock = threading.Lock()

    def add(
        self,
        source: str,
        destination: str,
        delivery: Delivery,
        *,
        start_time: str | None = None,
    ) -> RelayRecord:
        """Insert a relay. Raises DuplicateRelay if source is already routed."""
        record = RelayRecord(
            source_id=str(source),
            target_id=str(destination),
            delivery=delivery,
            start_time=start_time or utc_now_iso(),
        )
        with self._lock:
            if record.source_id in self._records:
                raise DuplicateRelay(
                    f"Mirror already active for source channel {record.source_id}",
                    code="duplicate_relay",
                    details={"source_id": record.source_id},
                )
            records = dict(self._records)
            records[record.source_id] = record
            self._records = records
        logger.debug("Router: added {} -> {} ({})", record.source_id, record.target_id, record.mode)
        return record

    def remove(self, source: str) -> bool:
        """Drop the relay for source. Returns whether one existed."""
        source = str(source)
        with self._lock:
            if source not in self._records:
                return False
            records = dict(self._records)
            del records[source]
            self._records = records
        logger.debug("Router: removed {}", source)
        return True

    def lookup(self, source: str) -> RelayRecord | None:
        return self._records.get(str(source))

    def list(self) -> list[RelaySummary]:
        """Summaries of all relays, sorted by source id."""
        records = self._records
        return [records[k].summary() for k in sorted(records)]

    def records(self) -> list[RelayRecord]:
        return list(self._records.values())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Persisted form of the whole table, keyed by source id."""
        records = self._records
        return {source: record.to_dict() for source, record in records.items()}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, source: object) -> bool:
        return str(source) in self._records
