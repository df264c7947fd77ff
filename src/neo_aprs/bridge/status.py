"""Status and error sinks: last value wins, mirrored to the log and the bus."""

from __future__ import annotations

import logging
from typing import Optional

from neo_telemetry.bus import TelemetryBus

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class StatusReporter:
    def __init__(self, bus: Optional[TelemetryBus] = None) -> None:
        self._bus = bus
        self.status: Optional[str] = None
        self.error: Optional[str] = None

    def set_status(self, text: str) -> None:
        self.status = text
        logger.info("Status: %s", text)
        if self._bus is not None:
            self._bus.publish_status(text)

    def set_error(self, text: str) -> None:
        self.error = text
        logger.error("Error: %s", text)
        if self._bus is not None:
            self._bus.publish_error(text)
