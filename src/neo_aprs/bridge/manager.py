"""Owns every TNC connection and wires them to the beacon and decoder paths."""

from __future__ import annotations

import functools
import logging
from typing import Optional

from neo_core.config import BridgeConfig
from neo_telemetry.bus import TelemetryBus

from neo_aprs.aprs.decoder import FrameDecoder
from neo_aprs.aprs.formatting import format_address
from neo_aprs.aprs.models import DecodedAprsFrame

from .beacon import BeaconTransmitter
from .connection import (
    CONNECT_TIMEOUT,
    IDLE_TIMEOUT,
    RECONNECT_DELAY,
    Opener,
    TncConnection,
    open_tcp,
)
from .presence import PresenceTracker, format_connection_status
from .scheduler import Scheduler, TimerHandle
from .status import StatusReporter
from .telemetry import TelemetryDecoder

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

STATUS_DEBOUNCE = 3.0


class BridgeManager:
    """Lifecycle owner for one bridge instance.

    All state lives on the instance; :meth:`stop` cancels timers and detaches
    callbacks before closing sockets, after which no status or error is
    emitted.
    """

    def __init__(
        self,
        config: BridgeConfig,
        bus: TelemetryBus,
        *,
        scheduler: Scheduler,
        status: Optional[StatusReporter] = None,
        opener: Opener = open_tcp,
        connect_timeout: float = CONNECT_TIMEOUT,
        reconnect_delay: float = RECONNECT_DELAY,
        idle_timeout: float = IDLE_TIMEOUT,
        status_debounce: float = STATUS_DEBOUNCE,
    ) -> None:
        self.config = config
        self._bus = bus
        self._scheduler = scheduler
        self.status = status or StatusReporter(bus)
        self._opener = opener
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._idle_timeout = idle_timeout
        self._status_debounce = status_debounce

        self.presence = PresenceTracker(clock=scheduler.time)
        self.telemetry = TelemetryDecoder(bus, self.presence)
        self.beacon = BeaconTransmitter(
            config.beacon,
            bus,
            connections=lambda: list(self.connections),
            status=self.status,
            on_transmit=self.schedule_status,
        )
        self.connections: list[TncConnection] = []
        self.decoders: dict[str, FrameDecoder] = {}
        self._status_timer: Optional[TimerHandle] = None
        self.running = False

    def start(self) -> bool:
        """Start all enabled connections; return False if the bridge idles."""
        if self.running:
            return True
        if self.config.config_errors:
            self.status.set_status("Configuration error: " + "; ".join(self.config.config_errors))
            return False
        endpoints = self.config.enabled_connections
        if not endpoints:
            self.status.set_status("No TNC connections configured")
            return False

        self.running = True
        for endpoint in endpoints:
            decoder = FrameDecoder(self._on_frame, label=endpoint.address)
            connection = TncConnection(
                endpoint,
                scheduler=self._scheduler,
                on_chunk=functools.partial(self._on_chunk, decoder),
                on_state_change=self._on_state_change,
                on_error=self._on_error,
                opener=self._opener,
                connect_timeout=self._connect_timeout,
                reconnect_delay=self._reconnect_delay,
                idle_timeout=self._idle_timeout,
            )
            self.decoders[endpoint.address] = decoder
            self.connections.append(connection)
        logger.info("Starting bridge with %d TNC connection(s)", len(self.connections))
        self.publish_status()
        self.beacon.start()
        for connection in self.connections:
            connection.start()
        return True

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        if self._status_timer is not None:
            self._status_timer.cancel()
            self._status_timer = None
        self.beacon.stop()
        for connection in self.connections:
            connection.stop()
        self.connections.clear()
        self.decoders.clear()
        self.presence.clear()
        logger.info("Bridge stopped")

    @property
    def online_connections(self) -> list[TncConnection]:
        return [connection for connection in self.connections if connection.online]

    def connection_status(self) -> str:
        return format_connection_status(
            (connection.address for connection in self.online_connections),
            self.presence.online_count(),
        )

    def publish_status(self) -> None:
        if not self.running:
            return
        self.status.set_status(self.connection_status())

    def schedule_status(self) -> None:
        """Publish the aggregate status after a short delay, coalescing bursts."""
        if not self.running or self._status_timer is not None:
            return
        self._status_timer = self._scheduler.call_later(self._status_debounce, self._flush_status)

    def _flush_status(self) -> None:
        self._status_timer = None
        self.publish_status()

    def _on_state_change(self, connection: TncConnection) -> None:
        logger.debug("%r", connection)
        self.publish_status()

    def _on_error(self, connection: TncConnection, exc: BaseException) -> None:
        if not self.running:
            return
        self.status.set_error(f"TNC {connection.address}: {exc}")

    def _on_chunk(self, decoder: FrameDecoder, chunk: bytes) -> None:
        try:
            decoder.feed(chunk)
        except Exception:
            logger.exception("Failed to decode chunk from %s", decoder.label)

    def _on_frame(self, frame: DecodedAprsFrame) -> None:
        if not self.running:
            return
        try:
            self.telemetry.handle_frame(frame)
        except Exception:
            logger.exception("Failed to republish frame from %s", frame.source.callsign)
        self.status.set_status(f"RX {_describe(frame)}")
        self.schedule_status()


def _describe(frame: DecodedAprsFrame) -> str:
    destination = format_address(frame.destination) if frame.destination else ""
    return f"{format_address(frame.source)}>{destination}:{frame.info}"
