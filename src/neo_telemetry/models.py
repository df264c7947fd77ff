"""Telemetry delta structures exchanged with the bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from neo_core.timeutils import isoformat_z

SELF_CONTEXT = "vessels.self"


@dataclass(slots=True)
class PathValue:
    path: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "value": self.value}


@dataclass(slots=True)
class Update:
    """One timestamped batch of path/value pairs from a single source."""

    values: list[PathValue] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    source: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"values": [pv.to_dict() for pv in self.values]}
        if self.timestamp is not None:
            body["timestamp"] = isoformat_z(self.timestamp)
        if self.source:
            body["$source"] = self.source
        return body


@dataclass(slots=True)
class Delta:
    context: str
    updates: list[Update] = field(default_factory=list)

    def values(self) -> dict[str, Any]:
        """Flatten to ``{path: value}``; later updates win."""
        flat: dict[str, Any] = {}
        for update in self.updates:
            for pv in update.values:
                flat[pv.path] = pv.value
        return flat

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "updates": [update.to_dict() for update in self.updates],
        }


@dataclass(frozen=True, slots=True)
class SubscriptionPath:
    """A subscribed path; ``period`` is the minimum seconds between deliveries."""

    path: str
    period: float = 0.0
