"""Republish decoded APRS weather stations as telemetry deltas."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Callable, Optional

from neo_core.timeutils import utc_now
from neo_telemetry.bus import TelemetryBus
from neo_telemetry.models import Delta, PathValue, Update

from neo_aprs.aprs import units
from neo_aprs.aprs.formatting import format_path
from neo_aprs.aprs.models import DecodedAprsFrame

from .presence import PresenceTracker

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

STATION_CONTEXT_PREFIX = "meteo"

WEATHER_PATHS = (
    ("environment.outside.temperature", "temperature", units.fahrenheit_to_kelvin),
    ("environment.wind.speedOverGround", "wind_speed", units.mph_to_ms),
    ("environment.wind.directionTrue", "wind_direction", units.degrees_to_radians),
    ("environment.outside.pressure", "barometer", units.barometer_to_pascal),
    ("environment.outside.relativeHumidity", "humidity", units.humidity_to_ratio),
)


def station_context(callsign: str) -> str:
    return f"{STATION_CONTEXT_PREFIX}.{callsign}"


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def weather_values(frame: DecodedAprsFrame) -> list[PathValue]:
    """Derive bus values from a weather report; missing inputs are skipped."""
    if frame.weather is None:
        return []
    values: list[PathValue] = []
    position = frame.position
    if position is not None and _finite(position.latitude) and _finite(position.longitude):
        values.append(
            PathValue(
                "navigation.position",
                {"latitude": position.latitude, "longitude": position.longitude},
            )
        )
    for path, attribute, convert in WEATHER_PATHS:
        converted = convert(getattr(frame.weather, attribute))
        if converted is not None:
            values.append(PathValue(path, converted))
    return values


class TelemetryDecoder:
    """Record presence for every inbound frame and publish weather reports.

    Position-only reports mark the station as heard but produce no delta.
    """

    def __init__(
        self,
        bus: TelemetryBus,
        presence: PresenceTracker,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._bus = bus
        self._presence = presence
        self._clock = clock
        self.published = 0

    def handle_frame(self, frame: DecodedAprsFrame) -> Optional[Delta]:
        self._presence.heard(frame.source)
        values = weather_values(frame)
        if not values:
            return None
        source = frame.source
        values.extend(
            [
                PathValue("", {"name": source.callsign}),
                PathValue("communication.aprs.callsign", source.callsign),
                PathValue("communication.aprs.ssid", source.ssid),
                PathValue("communication.aprs.path", format_path(frame.repeater_path)),
                PathValue("communication.aprs.comment", frame.comment or ""),
            ]
        )
        timestamp = None
        if frame.position is not None:
            timestamp = frame.position.timestamp
        delta = Delta(
            context=station_context(source.callsign),
            updates=[Update(values=values, timestamp=timestamp or self._clock())],
        )
        self._bus.publish(delta)
        self.published += 1
        logger.debug("Published %d values for %s", len(values), delta.context)
        return delta
