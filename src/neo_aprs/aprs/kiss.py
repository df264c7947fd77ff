"""KISS framing helpers for TNC byte streams."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

FEND = 0xC0
FESC = 0xDB
TFEND = 0xDC
TFESC = 0xDD


class KISSCommand(IntEnum):
    DATA = 0x00
    TX_DELAY = 0x01
    PERSISTENCE = 0x02
    SLOT_TIME = 0x03
    TX_TAIL = 0x04
    FULL_DUPLEX = 0x05
    SET_HARDWARE = 0x06
    RETURN = 0x0F


class KISSError(ValueError):
    pass


@dataclass(slots=True)
class KISSFrame:
    port: int
    command: KISSCommand
    payload: bytes


def kiss_wrap(
    payload: bytes | bytearray,
    *,
    port: int = 0,
    command: KISSCommand | int = KISSCommand.DATA,
) -> bytes:
    """Wrap a raw AX.25 payload in a delimited, escaped KISS frame."""
    command_value = int(KISSCommand(command))
    frame = bytearray()
    frame.append(FEND)
    frame.append(((command_value & 0x0F) << 4) | (port & 0x0F))
    frame.extend(kiss_escape(payload))
    frame.append(FEND)
    return bytes(frame)


def iter_segments(data: bytes) -> Iterator[bytes]:
    """Yield the non-empty segments of a chunk whose outer delimiters were removed.

    Back-to-back frames leave inner ``FEND`` bytes behind; each segment between
    them is one frame (command byte + escaped payload).
    """
    for segment in bytes(data).split(bytes([FEND])):
        if segment:
            yield segment


def decode_segment(segment: bytes) -> KISSFrame:
    """Decode one segment; raises :class:`KISSError` for that segment only."""
    header = segment[0]
    try:
        command = KISSCommand((header & 0xF0) >> 4)
    except ValueError as exc:
        raise KISSError(f"Unknown KISS command nibble in header {header:#x}") from exc
    return KISSFrame(
        port=header & 0x0F,
        command=command,
        payload=kiss_unescape(segment[1:]),
    )



def kiss_escape(payload: bytes | bytearray) -> bytes:
    """Escape a payload per the KISS protocol rules."""
    escaped = bytearray()
    for value in bytes(payload):
        if value == FEND:
            escaped.extend((FESC, TFEND))
        elif value == FESC:
            escaped.extend((FESC, TFESC))
        else:
            escaped.append(value)
    return bytes(escaped)


def kiss_unescape(payload: bytes) -> bytes:
    """Reverse KISS-specific escape sequences within a payload."""
    decoded = bytearray()
    iterator = iter(payload)
    for value in iterator:
        if value == FESC:
            try:
                nxt = next(iterator)
            except StopIteration as exc:
                raise KISSError("Truncated KISS escape sequence") from exc
            if nxt == TFEND:
                decoded.append(FEND)
            elif nxt == TFESC:
                decoded.append(FESC)
            else:
                raise KISSError(f"Invalid KISS escape byte: {nxt:#x}")
        else:
            decoded.append(value)
    return bytes(decoded)
