"""Coordinate and address formatting for outbound APRS frames."""

from __future__ import annotations

import math

from .models import StationAddress


def _split_degrees(value: float) -> tuple[int, int, int]:
    if not math.isfinite(value):
        raise ValueError(f"Coordinate must be a finite number, got {value!r}")
    degrees_float = abs(value)
    degrees = math.floor(degrees_float)
    minutes_float = 60 * (degrees_float - degrees)
    minutes = math.floor(minutes_float)
    # Second field is floor(60 * fractional minutes), rendered where APRS
    # expects hundredths of a minute.
    seconds = math.floor(60 * (minutes_float - minutes))
    return degrees, minutes, seconds


def format_latitude(value: float) -> str:
    """Format decimal degrees as ``DDMM.ssN`` / ``DDMM.ssS``."""
    degrees, minutes, seconds = _split_degrees(value)
    hemisphere = "N" if value > 0 else "S"
    return f"{degrees:02d}{minutes:02d}.{seconds:02d}{hemisphere}"


def format_longitude(value: float) -> str:
    """Format decimal degrees as ``DDDMM.ssE`` / ``DDDMM.ssW``."""
    degrees, minutes, seconds = _split_degrees(value)
    hemisphere = "E" if value > 0 else "W"
    return f"{degrees:03d}{minutes:02d}.{seconds:02d}{hemisphere}"


def format_address(station: StationAddress) -> str:
    if not station.ssid:
        return station.callsign
    return f"{station.callsign}-{station.ssid}"


def format_path(path: list[StationAddress]) -> list[str]:
    return [format_address(hop) for hop in path]
