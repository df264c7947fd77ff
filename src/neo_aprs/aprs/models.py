"""Data structures exchanged between the frame codec and the bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

BEACON_DESTINATION = "APZ42"


@dataclass(frozen=True, slots=True)
class StationAddress:
    """AX.25 station identity: callsign plus optional SSID (0-15)."""

    callsign: str
    ssid: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> StationAddress:
        """Parse ``CALL`` or ``CALL-SSID`` (a trailing ``*`` is ignored)."""
        text = text.strip().rstrip("*").upper()
        callsign, sep, ssid = text.partition("-")
        if not callsign:
            raise ValueError(f"Invalid station address: {text!r}")
        if not sep:
            return cls(callsign)
        try:
            value = int(ssid)
        except ValueError as exc:
            raise ValueError(f"Invalid SSID in station address: {text!r}") from exc
        if not 0 <= value <= 15:
            raise ValueError(f"SSID out of range in station address: {text!r}")
        return cls(callsign, value)


@dataclass(slots=True)
class Position:
    latitude: float
    longitude: float
    timestamp: Optional[datetime] = None


@dataclass(slots=True)
class Weather:
    """Weather report in APRS native units.

    temperature is degrees Fahrenheit, wind_speed is mph, wind_direction is
    degrees, humidity is percent where 0 means 100, barometer is kPa.
    """

    temperature: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None
    wind_gust: Optional[float] = None
    barometer: Optional[float] = None
    humidity: Optional[float] = None
    rain_1h: Optional[float] = None
    rain_24h: Optional[float] = None
    rain_since_midnight: Optional[float] = None


@dataclass(slots=True)
class DecodedAprsFrame:
    source: StationAddress
    destination: Optional[StationAddress] = None
    repeater_path: list[StationAddress] = field(default_factory=list)
    comment: Optional[str] = None
    position: Optional[Position] = None
    weather: Optional[Weather] = None
    symbol: Optional[str] = None
    info: str = ""


@dataclass(slots=True)
class AprsFrameOut:
    source: StationAddress
    info: str
    destination: StationAddress = field(
        default_factory=lambda: StationAddress(BEACON_DESTINATION)
    )
    repeaters: list[StationAddress] = field(
        default_factory=lambda: [StationAddress("WIDE1", 1)]
    )
