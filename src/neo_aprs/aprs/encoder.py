"""Encode outbound APRS frames for KISS transmission."""

from __future__ import annotations

from .ax25 import encode_ui_frame
from .kiss import kiss_wrap
from .models import AprsFrameOut


def encode_frame(frame: AprsFrameOut) -> bytes:
    """Encode ``frame`` as a complete KISS data frame (delimiters included)."""
    payload = encode_ui_frame(
        frame.destination,
        frame.source,
        list(frame.repeaters),
        frame.info.encode("ascii", errors="replace"),
    )
    return kiss_wrap(payload)
