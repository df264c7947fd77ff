"""APRS information-field parsing for position and weather reports.

Only the report types the bridge consumes are understood:

* ``!`` / ``=`` position without timestamp
* ``/`` / ``@`` position with timestamp
* ``_`` positionless weather report

Positions may be uncompressed (``DDMM.mmN/DDDMM.mmW``) or base-91 compressed.
Weather values are returned in APRS native units (see :class:`Weather`).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import Position, Weather

POSITION_TYPES = frozenset("!=/@")
TIMESTAMPED_TYPES = frozenset("/@")
WEATHER_SYMBOL = "_"

_UNCOMPRESSED_RE = re.compile(
    r"^(?P<lat>\d{4}\.[\d ]{2}[NS])(?P<table>.)(?P<lon>\d{5}\.[\d ]{2}[EW])(?P<code>.)"
)
_WIND_RE = re.compile(r"^(?P<dir>[\d .]{3})/(?P<speed>[\d .]{3})")

# Token letter -> field width, per the APRS weather report format.
_WEATHER_WIDTHS = {
    "c": 3,
    "s": 3,
    "g": 3,
    "t": 3,
    "r": 3,
    "p": 3,
    "P": 3,
    "h": 2,
    "b": 5,
    "L": 3,
    "l": 3,
    "#": 3,
}
_TOKEN_VALUE_RE = re.compile(r"^[\d .-]+$")


class AprsParseError(ValueError):
    """Raised when a recognised report type is malformed."""


@dataclass(slots=True)
class ParsedInfo:
    position: Optional[Position] = None
    weather: Optional[Weather] = None
    comment: Optional[str] = None
    symbol: Optional[str] = None


def parse_info(info: str, *, now: Optional[datetime] = None) -> ParsedInfo:
    """Parse an APRS information field.

    Unsupported report types produce an empty :class:`ParsedInfo`.

    Raises:
        AprsParseError: a position or weather report is malformed.
    """
    if not info:
        return ParsedInfo()
    now = now or datetime.now(timezone.utc)
    data_type = info[0]
    if data_type == "_":
        return _parse_positionless_weather(info[1:], now)
    if data_type not in POSITION_TYPES:
        return ParsedInfo()

    body = info[1:]
    timestamp = None
    if data_type in TIMESTAMPED_TYPES:
        if len(body) < 7:
            raise AprsParseError("Timestamped position too short")
        timestamp = parse_timestamp(body[:7], now)
        body = body[7:]
    return _parse_position_body(body, timestamp)


def parse_timestamp(raw: str, now: datetime) -> Optional[datetime]:
    """Resolve a 7-character APRS timestamp against ``now`` (UTC)."""
    if len(raw) != 7 or not raw[:6].isdigit():
        return None
    kind = raw[6]
    a, b, c = int(raw[0:2]), int(raw[2:4]), int(raw[4:6])
    try:
        if kind == "h":
            stamp = now.replace(hour=a, minute=b, second=c, microsecond=0)
            if stamp - now > timedelta(hours=1):
                stamp -= timedelta(days=1)
            return stamp
        if kind in ("z", "/"):
            # Local-time stamps are treated as UTC; no zone is transmitted.
            stamp = now.replace(day=a, hour=b, minute=c, second=0, microsecond=0)
            if stamp - now > timedelta(days=1):
                stamp = _previous_month(stamp)
            return stamp
    except ValueError:
        return None
    return None


def _previous_month(stamp: datetime) -> datetime:
    year, month = (stamp.year, stamp.month - 1) if stamp.month > 1 else (stamp.year - 1, 12)
    return stamp.replace(year=year, month=month)


def _parse_position_body(body: str, timestamp: Optional[datetime]) -> ParsedInfo:
    if body[:1].isdigit():
        match = _UNCOMPRESSED_RE.match(body)
        if match is None:
            raise AprsParseError(f"Malformed uncompressed position: {body[:20]!r}")
        latitude = _parse_latitude(match.group("lat"))
        longitude = _parse_longitude(match.group("lon"))
        symbol = match.group("table") + match.group("code")
        rest = body[match.end() :]
    else:
        latitude, longitude, symbol, rest = _parse_compressed(body)

    position = Position(latitude=latitude, longitude=longitude, timestamp=timestamp)
    if symbol[1] != WEATHER_SYMBOL:
        return ParsedInfo(position=position, comment=rest.strip() or None, symbol=symbol)

    weather = Weather()
    wind = _WIND_RE.match(rest)
    if wind:
        weather.wind_direction = _number(wind.group("dir"))
        weather.wind_speed = _number(wind.group("speed"))
        rest = rest[wind.end() :]
    rest = _parse_weather_tokens(rest, weather, positionless=False)
    return ParsedInfo(
        position=position,
        weather=weather,
        comment=rest.strip() or None,
        symbol=symbol,
    )


def _parse_positionless_weather(body: str, now: datetime) -> ParsedInfo:
    # MDHM timestamp (month, day, hour, minute); the report time is not
    # carried into the result as there is no position to attach it to.
    if len(body) < 8 or not body[:8].isdigit():
        raise AprsParseError("Positionless weather report missing MDHM timestamp")
    weather = Weather()
    rest = _parse_weather_tokens(body[8:], weather, positionless=True)
    return ParsedInfo(weather=weather, comment=rest.strip() or None, symbol="/_")


def _parse_weather_tokens(text: str, weather: Weather, *, positionless: bool) -> str:
    """Consume weather tokens from ``text``, returning the unparsed remainder."""
    index = 0
    while index < len(text):
        letter = text[index]
        width = _WEATHER_WIDTHS.get(letter)
        if width is None:
            break
        raw = text[index + 1 : index + 1 + width]
        if len(raw) != width or not _TOKEN_VALUE_RE.match(raw):
            break
        index += 1 + width
        value = _number(raw)
        if letter == "c":
            weather.wind_direction = value
        elif letter == "s":
            # 's' is sustained wind in positionless reports, snowfall otherwise.
            if positionless:
                weather.wind_speed = value
        elif letter == "g":
            weather.wind_gust = value
        elif letter == "t":
            weather.temperature = value
        elif letter == "r":
            weather.rain_1h = _scaled(value, 100)
        elif letter == "p":
            weather.rain_24h = _scaled(value, 100)
        elif letter == "P":
            weather.rain_since_midnight = _scaled(value, 100)
        elif letter == "h":
            weather.humidity = value
        elif letter == "b":
            # Tenths of millibar on the wire, kPa in the decoded report.
            weather.barometer = _scaled(value, 100)
    return text[index:]


def _parse_latitude(raw: str) -> float:
    degrees = int(raw[0:2])
    minutes = float(raw[2:7].replace(" ", "0"))
    value = degrees + minutes / 60.0
    if degrees > 90 or minutes >= 60:
        raise AprsParseError(f"Latitude out of range: {raw!r}")
    return -value if raw[7] == "S" else value


def _parse_longitude(raw: str) -> float:
    degrees = int(raw[0:3])
    minutes = float(raw[3:8].replace(" ", "0"))
    value = degrees + minutes / 60.0
    if degrees > 180 or minutes >= 60:
        raise AprsParseError(f"Longitude out of range: {raw!r}")
    return -value if raw[8] == "W" else value


def _parse_compressed(body: str) -> tuple[float, float, str, str]:
    if len(body) < 13:
        raise AprsParseError("Compressed position too short")
    table = body[0]
    lat_raw, lon_raw, code = body[1:5], body[5:9], body[9]
    if not all(33 <= ord(ch) <= 123 for ch in lat_raw + lon_raw):
        raise AprsParseError(f"Malformed compressed position: {body[:13]!r}")
    latitude = 90 - _base91(lat_raw) / 380926.0
    longitude = -180 + _base91(lon_raw) / 190463.0
    # Course/speed and compression type bytes are skipped.
    return latitude, longitude, table + code, body[13:]


def _base91(text: str) -> int:
    value = 0
    for char in text:
        value = value * 91 + (ord(char) - 33)
    return value


def _number(raw: str) -> Optional[float]:
    stripped = raw.strip()
    if not stripped or set(stripped) <= {"."}:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _scaled(value: Optional[float], divisor: float) -> Optional[float]:
    return None if value is None else value / divisor
