"""APRS protocol stack: KISS framing, AX.25 UI frames and report parsing.

Also hosts the coordinate/address formatting and unit conversions used to
translate between APRS wire fields and bus telemetry.
"""

from .ax25 import AX25DecodeError, decode_ui_frame, encode_ui_frame  # noqa: F401
from .decoder import FrameDecoder  # noqa: F401
from .encoder import encode_frame  # noqa: F401
from .formatting import format_address, format_latitude, format_longitude  # noqa: F401
from .kiss import KISSCommand, KISSError, KISSFrame, kiss_wrap  # noqa: F401
from .models import (  # noqa: F401
    AprsFrameOut,
    DecodedAprsFrame,
    Position,
    StationAddress,
    Weather,
)
from .parser import AprsParseError, parse_info  # noqa: F401

__all__ = [
    "AX25DecodeError",
    "decode_ui_frame",
    "encode_ui_frame",
    "FrameDecoder",
    "encode_frame",
    "format_address",
    "format_latitude",
    "format_longitude",
    "KISSCommand",
    "KISSError",
    "KISSFrame",
    "kiss_wrap",
    "AprsFrameOut",
    "DecodedAprsFrame",
    "Position",
    "StationAddress",
    "Weather",
    "AprsParseError",
    "parse_info",
]
