"""Last-heard bookkeeping for remote stations and aggregate link status."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from neo_aprs.aprs.formatting import format_address
from neo_aprs.aprs.models import StationAddress

ONLINE_WINDOW = 30 * 60.0


class PresenceTracker:
    """Map of formatted station address to the time it was last heard.

    Entries are never removed individually; they age out of
    :meth:`online_count` once older than the window.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._last_heard: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_heard)

    def heard(self, station: StationAddress) -> str:
        address = format_address(station)
        self._last_heard[address] = self._clock()
        return address

    def last_heard(self, address: str) -> Optional[float]:
        return self._last_heard.get(address)

    def online_stations(self, window: float = ONLINE_WINDOW) -> list[str]:
        cutoff = self._clock() - window
        return sorted(
            address for address, heard_at in self._last_heard.items() if heard_at > cutoff
        )

    def online_count(self, window: float = ONLINE_WINDOW) -> int:
        cutoff = self._clock() - window
        return sum(1 for heard_at in self._last_heard.values() if heard_at > cutoff)

    def clear(self) -> None:
        self._last_heard.clear()


def format_connection_status(online_addresses: Iterable[str], stations_online: int) -> str:
    """Human-readable summary, e.g. ``Connected to 1 TNC (127.0.0.1:8001), 3 stations online``."""
    addresses = list(online_addresses)
    if addresses:
        noun = "TNC" if len(addresses) == 1 else "TNCs"
        link = f"Connected to {len(addresses)} {noun} ({', '.join(addresses)})"
    else:
        link = "Not connected to any TNC"
    station_noun = "station" if stations_online == 1 else "stations"
    return f"{link}, {stations_online} {station_noun} online"
