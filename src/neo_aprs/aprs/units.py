"""Conversions from APRS native weather units to bus (SI) units.

Every converter returns ``None`` for a missing or non-finite input so a
caller can omit just that value.
"""

from __future__ import annotations

import math
from typing import Optional

MPH_TO_MS = 0.44704
RANKINE_OFFSET = 459.67
BAROMETER_SCALE = 1000.0


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def fahrenheit_to_kelvin(value: Optional[float]) -> Optional[float]:
    number = _finite(value)
    if number is None:
        return None
    return (number + RANKINE_OFFSET) * 5 / 9


def mph_to_ms(value: Optional[float]) -> Optional[float]:
    number = _finite(value)
    if number is None:
        return None
    return number * MPH_TO_MS


def degrees_to_radians(value: Optional[float]) -> Optional[float]:
    number = _finite(value)
    if number is None:
        return None
    return number * math.pi / 180


def barometer_to_pascal(value: Optional[float]) -> Optional[float]:
    """Scale the decoded barometer value (kPa) to pascal."""
    number = _finite(value)
    if number is None:
        return None
    return number * BAROMETER_SCALE


def humidity_to_ratio(value: Optional[float]) -> Optional[float]:
    """APRS humidity percent to a 0-1 ratio; a literal 0 means 100%."""
    number = _finite(value)
    if number is None:
        return None
    if number == 0:
        number = 100.0
    return number / 100
