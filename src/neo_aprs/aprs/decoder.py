"""Decode de-delimited KISS chunks into APRS reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .ax25 import AX25DecodeError, decode_ui_frame
from .kiss import KISSCommand, KISSError, decode_segment, iter_segments
from .models import DecodedAprsFrame
from .parser import AprsParseError, parse_info

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

FrameCallback = Callable[[DecodedAprsFrame], None]


class FrameDecoder:
    """Turn chunks from one TNC connection into :class:`DecodedAprsFrame` events.

    The callback is registered once at construction and invoked synchronously,
    in arrival order, for every UI frame found in a chunk. A chunk may carry
    several frames or none. A frame that fails to decode is logged and skipped
    without affecting the rest of the chunk.
    """

    def __init__(
        self,
        on_frame: FrameCallback,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        label: str = "",
    ) -> None:
        self._on_frame = on_frame
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.label = label
        self.frames_decoded = 0
        self.frames_rejected = 0

    def feed(self, chunk: bytes) -> int:
        """Decode ``chunk`` and emit its frames; return how many were emitted."""
        emitted = 0
        for segment in iter_segments(chunk):
            try:
                kiss_frame = decode_segment(segment)
            except KISSError as exc:
                self.frames_rejected += 1
                logger.debug("%s dropping malformed KISS segment: %s", self.label, exc)
                continue
            if kiss_frame.command is not KISSCommand.DATA:
                continue
            decoded = self._decode(kiss_frame.payload)
            if decoded is None:
                self.frames_rejected += 1
                continue
            self.frames_decoded += 1
            emitted += 1
            self._on_frame(decoded)
        return emitted

    def _decode(self, payload: bytes) -> Optional[DecodedAprsFrame]:
        try:
            frame = decode_ui_frame(payload)
        except AX25DecodeError as exc:
            logger.debug("%s ignoring AX.25 frame: %s", self.label, exc)
            return None

        logger.debug("%s RX %s", self.label, frame.to_tnc2())
        info = frame.info.decode("latin-1")
        decoded = DecodedAprsFrame(
            source=frame.source.to_station(),
            destination=frame.destination.to_station(),
            repeater_path=[digi.to_station() for digi in frame.repeaters],
            info=info,
        )
        try:
            parsed = parse_info(info, now=self._clock())
        except AprsParseError as exc:
            # The station was still heard; only the report body is unusable.
            logger.debug("%s unparseable report from %s: %s", self.label, frame.source.to_tnc2(), exc)
            return decoded
        decoded.position = parsed.position
        decoded.weather = parsed.weather
        decoded.comment = parsed.comment
        decoded.symbol = parsed.symbol
        return decoded
