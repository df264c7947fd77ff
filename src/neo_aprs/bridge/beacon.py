"""Outbound position beacons built from the vessel's own telemetry."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable, Optional

from neo_core.config import BeaconConfig
from neo_core.timeutils import utc_now
from neo_telemetry.bus import TelemetryBus, Unsubscribe
from neo_telemetry.models import SELF_CONTEXT, Delta, PathValue, SubscriptionPath, Update

from neo_aprs.aprs.encoder import encode_frame
from neo_aprs.aprs.formatting import format_latitude, format_longitude
from neo_aprs.aprs.models import AprsFrameOut, StationAddress

from .connection import TncConnection
from .status import StatusReporter

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

POSITION_PATH = "navigation.position"
STATE_PATH = "navigation.state"
STATE_PERIOD = 60.0

CALLSIGN_PATH = "communication.aprs.callsign"
SSID_PATH = "communication.aprs.ssid"
SYMBOL_PATH = "communication.aprs.symbol"

DISABLED_STATUS = "Beaconing disabled, no TX"


def build_payload(
    latitude: float,
    longitude: float,
    symbol: str,
    tokens: Iterable[Optional[str]] = (),
) -> str:
    """Render an APRS position report without timestamp.

    ``symbol`` is the two-character table/code pair; empty ``tokens`` are
    skipped so absent fields do not leave double spaces.
    """
    text = f"={format_latitude(latitude)}{symbol[0]}{format_longitude(longitude)}{symbol[1]}"
    for token in tokens:
        if token:
            text += f" {token}"
    return text


def _coordinates(value: Any) -> Optional[tuple[float, float]]:
    if not isinstance(value, dict):
        return None
    try:
        latitude = float(value["latitude"])
        longitude = float(value["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    return latitude, longitude


class BeaconTransmitter:
    """Turn vessel position updates into APRS beacons on transmit-enabled TNCs.

    ``connections`` is called on every beacon so the transmitter always sees
    the live set owned by the manager. ``on_transmit`` lets the manager
    schedule its debounced status refresh.
    """

    def __init__(
        self,
        config: BeaconConfig,
        bus: TelemetryBus,
        *,
        connections: Callable[[], Iterable[TncConnection]],
        status: StatusReporter,
        on_transmit: Callable[[], None] = lambda: None,
    ) -> None:
        self._config = config
        self._bus = bus
        self._connections = connections
        self._status = status
        self._on_transmit = on_transmit
        self._unsubscribes: list[Unsubscribe] = []
        self.nav_state: Optional[str] = None
        self.last_payload: Optional[str] = None

    @property
    def source(self) -> StationAddress:
        return StationAddress(self._config.callsign, self._config.ssid)

    def start(self) -> None:
        paths = [
            SubscriptionPath(POSITION_PATH, period=self._config.interval * 60.0),
            SubscriptionPath(STATE_PATH, period=STATE_PERIOD),
        ]
        self._unsubscribes.append(self._bus.subscribe(SELF_CONTEXT, paths, self.handle_delta))
        if not self._config.enabled:
            self._status.set_status(DISABLED_STATUS)

    def stop(self) -> None:
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            unsubscribe()

    def handle_delta(self, delta: Delta) -> None:
        for update in delta.updates:
            for pv in update.values:
                if pv.path == STATE_PATH:
                    self.nav_state = None if pv.value is None else str(pv.value)
                elif pv.path == POSITION_PATH:
                    self.beacon(pv.value)

    def beacon(self, position: Any) -> list[str]:
        """Transmit one beacon for ``position``; return the addresses written to."""
        sent: list[str] = []
        coordinates = _coordinates(position)
        if coordinates is None:
            logger.warning("Ignoring unusable position update: %r", position)
        elif not self._config.enabled:
            self._status.set_status(DISABLED_STATUS)
        else:
            payload = build_payload(
                *coordinates,
                self._config.symbol,
                (self._config.vessel_name, self.nav_state, self._config.note),
            )
            frame = AprsFrameOut(source=self.source, info=payload)
            # Transports get the frame without its leading FEND.
            data = encode_frame(frame)[1:]
            for connection in self._connections():
                if connection.transmit and connection.send(data):
                    sent.append(connection.address)
            self.last_payload = payload
            logger.info("TX %s to %d TNC(s)", payload, len(sent))
            self._status.set_status(f"TX {payload}")
            self._on_transmit()
        self.publish_identity()
        return sent

    def publish_identity(self) -> None:
        self._bus.publish(
            Delta(
                context=SELF_CONTEXT,
                updates=[
                    Update(
                        values=[
                            PathValue(CALLSIGN_PATH, self._config.callsign),
                            PathValue(SSID_PATH, self._config.ssid),
                            PathValue(SYMBOL_PATH, self._config.symbol),
                        ],
                        timestamp=utc_now(),
                    )
                ],
            )
        )
