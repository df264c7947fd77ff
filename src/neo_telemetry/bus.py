"""Telemetry bus abstraction the bridge depends on.

Implementations live alongside this file (eg. `mqtt_bus.py`).
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from .models import Delta, SubscriptionPath

DeltaCallback = Callable[[Delta], None]
Unsubscribe = Callable[[], None]


class TelemetryBus(Protocol):
    """Minimal bus interface.

    Callbacks passed to :meth:`subscribe` must be invoked on the event loop
    that owns the bridge, never from a foreign thread.
    """

    def subscribe(
        self,
        context: str,
        paths: Sequence[SubscriptionPath],
        callback: DeltaCallback,
    ) -> Unsubscribe:  # pragma: no cover - interface
        ...

    def publish(self, delta: Delta) -> None:  # pragma: no cover - interface
        ...

    def publish_status(self, text: str) -> None:  # pragma: no cover - interface
        ...

    def publish_error(self, text: str) -> None:  # pragma: no cover - interface
        ...


__all__ = ["TelemetryBus", "DeltaCallback", "Unsubscribe"]
