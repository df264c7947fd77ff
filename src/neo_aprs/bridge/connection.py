"""Resilient KISS-over-TCP connection to a single TNC.

Each :class:`TncConnection` runs an explicit state machine::

    IDLE -> CONNECTING -> ONLINE -> RECONNECTING -> CONNECTING -> ...
                 \\______________________/
    (any) -> STOPPED

Failures never escalate: a connect error, timeout or dropped socket puts the
connection in RECONNECTING with exactly one reconnect timer pending. Retries
are unbounded and use a fixed delay.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Optional, Protocol

from neo_core.config import TncEndpointConfig

from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

CONNECT_TIMEOUT = 10.0
RECONNECT_DELAY = 10.0
IDLE_TIMEOUT = 10.0
MIN_CHUNK_BYTES = 4


class ConnectionPhase(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ONLINE = "online"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class PendingOpen(Protocol):
    def cancel(self) -> Any:  # pragma: no cover - interface
        ...


Opener = Callable[[str, int, "TncProtocol"], Optional[PendingOpen]]


class TncProtocol(asyncio.Protocol):
    """Transport callbacks for one connect attempt.

    A fresh protocol is created per attempt so events from an abandoned
    transport can be recognised and ignored by the owning connection.
    """

    def __init__(self, owner: "TncConnection") -> None:
        self._owner = owner

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._owner._on_transport_made(self, transport)

    def data_received(self, data: bytes) -> None:
        self._owner._on_data(self, data)

    def eof_received(self) -> bool:
        # Returning False lets the transport close itself.
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._owner._on_transport_lost(self, exc)

    def connection_failed(self, exc: BaseException) -> None:
        self._owner._on_connect_failed(self, exc)


def open_tcp(host: str, port: int, protocol: TncProtocol) -> asyncio.Task:
    """Start an asyncio TCP connect that reports back through ``protocol``."""
    loop = asyncio.get_running_loop()

    async def _open() -> None:
        try:
            await loop.create_connection(lambda: protocol, host, port)
        except OSError as exc:
            protocol.connection_failed(exc)

    return loop.create_task(_open(), name=f"tnc-connect-{host}:{port}")


def _noop(*_args: Any) -> None:
    return None


class TncConnection:
    def __init__(
        self,
        endpoint: TncEndpointConfig,
        *,
        scheduler: Scheduler,
        on_chunk: Callable[[bytes], None],
        on_state_change: Callable[["TncConnection"], None] = _noop,
        on_error: Callable[["TncConnection", BaseException], None] = _noop,
        opener: Opener = open_tcp,
        connect_timeout: float = CONNECT_TIMEOUT,
        reconnect_delay: float = RECONNECT_DELAY,
        idle_timeout: float = IDLE_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self._scheduler = scheduler
        self._on_chunk = on_chunk
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._opener = opener
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._idle_timeout = idle_timeout

        self.phase = ConnectionPhase.IDLE
        self.attempt = 0
        self._protocol: Optional[TncProtocol] = None
        self._transport: Optional[asyncio.Transport] = None
        self._pending_open: Optional[PendingOpen] = None
        self._reconnect_timer: Optional[TimerHandle] = None
        self._connect_timer: Optional[TimerHandle] = None
        self._idle_timer: Optional[TimerHandle] = None

    def __repr__(self) -> str:
        return f"TncConnection({self.address}, {self.phase.value}, attempt={self.attempt})"

    @property
    def address(self) -> str:
        return self.endpoint.address

    @property
    def transmit(self) -> bool:
        return self.endpoint.transmit

    @property
    def online(self) -> bool:
        return self.phase is ConnectionPhase.ONLINE

    @property
    def send_handle(self) -> Optional[asyncio.Transport]:
        """The writable transport; present exactly while online."""
        return self._transport if self.online else None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def start(self) -> None:
        if self.phase is not ConnectionPhase.IDLE:
            return
        self._connect()

    def send(self, data: bytes) -> bool:
        """Write ``data`` if online; return whether it was handed to the transport."""
        handle = self.send_handle
        if handle is None:
            return False
        handle.write(data)
        return True

    def stop(self) -> None:
        """Tear down for good: timers and callbacks first, then the socket."""
        if self.phase is ConnectionPhase.STOPPED:
            return
        self.phase = ConnectionPhase.STOPPED
        self._on_chunk = _noop
        self._on_state_change = _noop
        self._on_error = _noop
        self._cancel_timer("_reconnect_timer")
        self._cancel_timer("_connect_timer")
        self._cancel_timer("_idle_timer")
        if self._pending_open is not None:
            self._pending_open.cancel()
            self._pending_open = None
        self._protocol = None
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.abort()
        logger.debug("TNC %s stopped", self.address)

    def _connect(self) -> None:
        self.attempt += 1
        self.phase = ConnectionPhase.CONNECTING
        logger.info("Connecting to TNC %s (attempt %d)", self.address, self.attempt)
        protocol = TncProtocol(self)
        self._protocol = protocol
        self._connect_timer = self._scheduler.call_later(
            self._connect_timeout, self._on_connect_timeout
        )
        self._pending_open = self._opener(self.endpoint.host, self.endpoint.port, protocol)

    def _is_current(self, protocol: TncProtocol) -> bool:
        return protocol is self._protocol and self.phase is not ConnectionPhase.STOPPED

    def _on_transport_made(self, protocol: TncProtocol, transport: asyncio.BaseTransport) -> None:
        if not self._is_current(protocol) or self.phase is not ConnectionPhase.CONNECTING:
            transport.abort()  # type: ignore[attr-defined]
            return
        self._cancel_timer("_connect_timer")
        self._cancel_timer("_reconnect_timer")
        self._pending_open = None
        self._transport = transport  # type: ignore[assignment]
        self.phase = ConnectionPhase.ONLINE
        self._arm_idle_timer()
        logger.info("TNC %s online", self.address)
        self._on_state_change(self)

    def _on_data(self, protocol: TncProtocol, data: bytes) -> None:
        if not self._is_current(protocol):
            return
        self._arm_idle_timer()
        if len(data) < MIN_CHUNK_BYTES:
            return
        self._on_chunk(data[1:-1])

    def _on_transport_lost(self, protocol: TncProtocol, exc: Optional[BaseException]) -> None:
        if not self._is_current(protocol):
            return
        if exc is not None:
            self._report_error(exc)
        self._protocol = None
        self._transport = None
        self._cancel_timer("_idle_timer")
        logger.info("TNC %s offline", self.address)
        self.phase = ConnectionPhase.RECONNECTING
        self._schedule_reconnect()
        self._on_state_change(self)

    def _on_connect_failed(self, protocol: TncProtocol, exc: BaseException) -> None:
        if not self._is_current(protocol):
            return
        self._cancel_timer("_connect_timer")
        self._pending_open = None
        self._fail_attempt(exc)

    def _on_connect_timeout(self) -> None:
        self._connect_timer = None
        if self.phase is not ConnectionPhase.CONNECTING:
            return
        if self._pending_open is not None:
            self._pending_open.cancel()
            self._pending_open = None
        self._fail_attempt(
            TimeoutError(f"Timed out after {self._connect_timeout:.0f}s connecting to {self.address}")
        )

    def _fail_attempt(self, exc: BaseException) -> None:
        self._protocol = None
        self._report_error(exc)
        self.phase = ConnectionPhase.RECONNECTING
        self._schedule_reconnect()
        self._on_state_change(self)

    def _on_idle_timeout(self) -> None:
        self._idle_timer = None
        transport = self.send_handle
        if transport is None:
            return
        logger.info("TNC %s idle for %.0fs; closing", self.address, self._idle_timeout)
        if transport.can_write_eof():
            transport.write_eof()
        else:
            transport.close()

    def _report_error(self, exc: BaseException) -> None:
        # Only the first failure of a retry cycle reaches the operator.
        if self._reconnect_timer is not None:
            logger.debug("TNC %s error while reconnect pending: %s", self.address, exc)
            return
        logger.warning("TNC %s error: %s", self.address, exc)
        self._on_error(self, exc)

    def _schedule_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            return
        logger.debug("TNC %s reconnecting in %.0fs", self.address, self._reconnect_delay)
        self._reconnect_timer = self._scheduler.call_later(self._reconnect_delay, self._reconnect)

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        if self.phase is ConnectionPhase.STOPPED:
            return
        self._connect()

    def _arm_idle_timer(self) -> None:
        if self._idle_timeout <= 0:
            return
        self._cancel_timer("_idle_timer")
        self._idle_timer = self._scheduler.call_later(self._idle_timeout, self._on_idle_timeout)

    def _cancel_timer(self, attr: str) -> None:
        handle = getattr(self, attr)
        if handle is not None:
            handle.cancel()
            setattr(self, attr, None)
