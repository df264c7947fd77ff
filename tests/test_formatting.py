"""Tests for APRS coordinate and address formatting."""

from __future__ import annotations

import math

import pytest

from neo_aprs.aprs.formatting import (
    format_address,
    format_latitude,
    format_longitude,
    format_path,
)
from neo_aprs.aprs.models import StationAddress


def test_format_latitude_north() -> None:
    assert format_latitude(45.5) == "4530.00N"


def test_format_longitude_west() -> None:
    assert format_longitude(-122.75) == "12245.00W"


def test_hundredths_field_is_truncated_sixtieths_of_a_minute() -> None:
    # 0.3456 deg = 20.736 min; floor(0.736 * 60) = 44
    assert format_latitude(12.3456) == "1220.44N"
    assert format_latitude(-12.3456) == "1220.44S"


def test_longitude_east_pads_three_degree_digits() -> None:
    assert format_longitude(7.25) == "00715.00E"


@pytest.mark.parametrize("value", [0.01, 1.999, 33.3333, 59.9, 89.99])
def test_latitude_width_and_degrees_minutes(value: float) -> None:
    text = format_latitude(value)
    assert len(text) == 8
    assert int(text[0:2]) == math.floor(value)
    assert int(text[2:4]) == math.floor((value - math.floor(value)) * 60)


@pytest.mark.parametrize("value", [-0.5, -17.123, -179.99, 100.0, 179.5])
def test_longitude_width_and_degrees_minutes(value: float) -> None:
    text = format_longitude(value)
    magnitude = abs(value)
    assert len(text) == 9
    assert int(text[0:3]) == math.floor(magnitude)
    assert int(text[3:5]) == math.floor((magnitude - math.floor(magnitude)) * 60)


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_coordinates_are_rejected(bad: float) -> None:
    with pytest.raises(ValueError):
        format_latitude(bad)
    with pytest.raises(ValueError):
        format_longitude(bad)


def test_format_address_omits_zero_or_missing_ssid() -> None:
    assert format_address(StationAddress("N0CALL", 0)) == "N0CALL"
    assert format_address(StationAddress("N0CALL")) == "N0CALL"
    assert format_address(StationAddress("N0CALL", 9)) == "N0CALL-9"


def test_format_path_keeps_order() -> None:
    path = [StationAddress("WIDE1", 1), StationAddress("K7ABC", 0), StationAddress("WIDE2", 2)]
    assert format_path(path) == ["WIDE1-1", "K7ABC", "WIDE2-2"]


def test_station_address_parse() -> None:
    assert StationAddress.parse("n0call-9") == StationAddress("N0CALL", 9)
    assert StationAddress.parse("WIDE2-2*") == StationAddress("WIDE2", 2)
    assert StationAddress.parse("KE7XYZ") == StationAddress("KE7XYZ")
    with pytest.raises(ValueError):
        StationAddress.parse("N0CALL-16")
