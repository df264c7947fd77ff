"""Encoding and decoding of AX.25 UI frames carried inside KISS payloads."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import StationAddress

UI_CONTROL = 0x03
NO_LAYER3_PID = 0xF0


class AX25DecodeError(ValueError):
    """Raised when a KISS payload cannot be decoded into a UI frame."""


@dataclass(slots=True)
class AX25Address:
    callsign: str
    ssid: int
    has_been_repeated: bool = False

    def to_tnc2(self, include_asterisk: bool = False) -> str:
        suffix = f"-{self.ssid}" if self.ssid > 0 else ""
        indicator = "*" if include_asterisk and self.has_been_repeated else ""
        return f"{self.callsign}{suffix}{indicator}"

    def to_station(self) -> StationAddress:
        return StationAddress(self.callsign, self.ssid)


@dataclass(slots=True)
class AX25Frame:
    destination: AX25Address
    source: AX25Address
    repeaters: list[AX25Address] = field(default_factory=list)
    info: bytes = b""
    control: int = UI_CONTROL
    pid: int = NO_LAYER3_PID

    def to_tnc2(self) -> str:
        path = "".join(
            f",{digi.to_tnc2(include_asterisk=True)}" for digi in self.repeaters
        )
        info = self.info.decode("ascii", errors="replace")
        return f"{self.source.to_tnc2()}>{self.destination.to_tnc2()}{path}:{info}"


def decode_ui_frame(payload: bytes) -> AX25Frame:
    """Decode an AX.25 payload; only unnumbered information frames are accepted."""
    if len(payload) < 16:
        raise AX25DecodeError("AX.25 frame too short")
    addresses, offset = _parse_address_fields(payload)
    if len(addresses) < 2:
        raise AX25DecodeError("AX.25 frame missing source/destination addresses")
    if offset + 2 > len(payload):
        raise AX25DecodeError("AX.25 frame missing control/PID fields")
    control = payload[offset]
    pid = payload[offset + 1]
    if control & 0xEF != UI_CONTROL or pid != NO_LAYER3_PID:
        raise AX25DecodeError(
            f"Unsupported AX.25 frame type control={control:#x} pid={pid:#x}"
        )
    info = payload[offset + 2 :]
    for sep in (b"\r", b"\n"):
        idx = info.find(sep)
        if idx >= 0:
            info = info[:idx]
            break
    return AX25Frame(
        destination=addresses[0],
        source=addresses[1],
        repeaters=addresses[2:],
        info=info,
        control=control,
        pid=pid,
    )


def encode_ui_frame(
    destination: StationAddress,
    source: StationAddress,
    repeaters: list[StationAddress],
    info: bytes,
) -> bytes:
    """Build a raw AX.25 UI frame (without KISS framing)."""
    stations = [destination, source, *repeaters]
    frame = bytearray()
    for index, station in enumerate(stations):
        last = index == len(stations) - 1
        # Command frame: C bit set on destination, clear on source.
        command_bit = index == 0
        frame.extend(_encode_address(station, last=last, command_bit=command_bit))
    frame.append(UI_CONTROL)
    frame.append(NO_LAYER3_PID)
    frame.extend(info)
    return bytes(frame)


def _encode_address(station: StationAddress, *, last: bool, command_bit: bool) -> bytes:
    callsign = station.callsign.upper()
    if not callsign or len(callsign) > 6:
        raise ValueError(f"AX.25 callsign must be 1-6 characters: {callsign!r}")
    ssid = station.ssid or 0
    if not 0 <= ssid <= 15:
        raise ValueError(f"AX.25 SSID must be 0-15: {ssid}")
    field_bytes = bytearray((ord(char) << 1) & 0xFE for char in callsign.ljust(6))
    byte = 0x60 | (ssid << 1)
    if command_bit:
        byte |= 0x80
    if last:
        byte |= 0x01
    field_bytes.append(byte)
    return bytes(field_bytes)


def _parse_address_fields(payload: bytes) -> tuple[list[AX25Address], int]:
    addresses: list[AX25Address] = []
    offset = 0
    while offset + 7 <= len(payload):
        raw = payload[offset : offset + 7]
        offset += 7
        callsign = _decode_callsign(raw[:6])
        ssid = (raw[6] >> 1) & 0x0F
        has_been_repeated = bool(raw[6] & 0x80)
        addresses.append(AX25Address(callsign, ssid, has_been_repeated))
        if raw[6] & 0x01:
            break
    else:
        raise AX25DecodeError("AX.25 address extension bit not found")
    return addresses, offset


def _decode_callsign(raw: bytes) -> str:
    chars = []
    for byte in raw:
        value = (byte >> 1) & 0x7F
        if value == 0x20:
            chars.append(" ")
        elif value != 0:
            chars.append(chr(value))
    return "".join(chars).strip().upper()
