"""Tests for the per-TNC connection state machine."""

from __future__ import annotations

import pytest

from neo_aprs.bridge.connection import ConnectionPhase, TncConnection
from neo_core.config import TncEndpointConfig


class Recorder:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.states: list[ConnectionPhase] = []
        self.errors: list[BaseException] = []

    def on_chunk(self, chunk: bytes) -> None:
        self.chunks.append(chunk)

    def on_state_change(self, connection: TncConnection) -> None:
        self.states.append(connection.phase)

    def on_error(self, connection: TncConnection, exc: BaseException) -> None:
        self.errors.append(exc)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_connection(scheduler, opener, recorder):
    def _make(**kwargs) -> TncConnection:
        endpoint = kwargs.pop(
            "endpoint", TncEndpointConfig(host="10.0.0.5", port=8001, transmit=True)
        )
        return TncConnection(
            endpoint,
            scheduler=scheduler,
            on_chunk=recorder.on_chunk,
            on_state_change=recorder.on_state_change,
            on_error=recorder.on_error,
            opener=opener,
            **kwargs,
        )

    return _make


def _pending_reconnects(scheduler, connection: TncConnection) -> list:
    return [t for t in scheduler.pending if t.callback == connection._reconnect]


def test_start_connects_and_goes_online(make_connection, opener, recorder) -> None:
    conn = make_connection()
    conn.start()

    assert conn.phase is ConnectionPhase.CONNECTING
    assert conn.attempt == 1
    assert (opener.last.host, opener.last.port) == ("10.0.0.5", 8001)
    assert conn.send_handle is None

    transport = opener.last.succeed()

    assert conn.online is True
    assert conn.send_handle is transport
    assert recorder.states == [ConnectionPhase.ONLINE]


def test_send_only_while_online(make_connection, opener) -> None:
    conn = make_connection()
    conn.start()
    assert conn.send(b"x") is False

    transport = opener.last.succeed()
    assert conn.send(b"frame") is True
    assert transport.written == [b"frame"]


def test_connect_failure_reports_once_and_schedules_single_reconnect(
    make_connection, opener, scheduler, recorder
) -> None:
    conn = make_connection()
    conn.start()
    opener.last.fail()

    assert conn.phase is ConnectionPhase.RECONNECTING
    assert conn.reconnect_pending is True
    assert len(recorder.errors) == 1
    assert len(_pending_reconnects(scheduler, conn)) == 1


def test_repeated_errors_keep_one_pending_reconnect(
    make_connection, opener, scheduler, recorder
) -> None:
    conn = make_connection()
    conn.start()
    transport = opener.last.succeed()
    protocol = opener.last.protocol

    protocol.connection_lost(ConnectionResetError("reset"))
    # Late events from the dead socket are ignored.
    protocol.connection_lost(ConnectionResetError("reset again"))
    protocol.connection_failed(OSError("boom"))
    protocol.data_received(b"\xc0\x00abc\xc0")

    assert conn.send_handle is None
    assert transport.written == []
    assert len(_pending_reconnects(scheduler, conn)) == 1
    assert len(recorder.errors) == 1
    assert recorder.chunks == []


def test_each_retry_cycle_reports_its_first_error(
    make_connection, opener, scheduler, recorder
) -> None:
    conn = make_connection(connect_timeout=10, reconnect_delay=10)
    conn.start()
    opener.last.fail()
    assert len(recorder.errors) == 1

    # Reconnect fires, the new attempt hangs and times out: a fresh error cycle.
    scheduler.advance(10)
    assert conn.attempt == 2
    scheduler.advance(10)

    assert opener.last.cancelled is True
    assert isinstance(recorder.errors[-1], TimeoutError)
    assert len(recorder.errors) == 2
    assert len(_pending_reconnects(scheduler, conn)) == 1


def test_reconnect_retries_forever_with_fixed_delay(make_connection, opener, scheduler) -> None:
    conn = make_connection(reconnect_delay=10)
    conn.start()

    for expected_attempt in range(2, 8):
        opener.last.fail()
        timer = _pending_reconnects(scheduler, conn)[0]
        assert timer.when - scheduler.now == pytest.approx(10)
        scheduler.advance(10)
        assert conn.attempt == expected_attempt

    assert len(opener.attempts) == 7


def test_connection_close_goes_offline_then_reconnects(
    make_connection, opener, scheduler, recorder
) -> None:
    conn = make_connection()
    conn.start()
    opener.last.succeed()

    opener.last.protocol.connection_lost(None)

    assert conn.phase is ConnectionPhase.RECONNECTING
    assert conn.online is False
    assert recorder.errors == []
    assert recorder.states == [ConnectionPhase.ONLINE, ConnectionPhase.RECONNECTING]

    scheduler.advance(10)
    transport = opener.last.succeed()
    assert conn.online is True
    assert conn.attempt == 2
    assert conn.send_handle is transport
    assert conn.reconnect_pending is False


def test_connect_timeout_abandons_attempt(make_connection, opener, scheduler, recorder) -> None:
    conn = make_connection(connect_timeout=10)
    conn.start()
    first = opener.last

    scheduler.advance(10)

    assert first.cancelled is True
    assert conn.phase is ConnectionPhase.RECONNECTING
    assert isinstance(recorder.errors[0], TimeoutError)

    # A late handshake from the abandoned attempt is refused.
    late = first.succeed()
    assert late.aborted is True
    assert conn.online is False


def test_connect_timer_cleared_when_online(make_connection, opener, scheduler, recorder) -> None:
    conn = make_connection(connect_timeout=10)
    conn.start()
    opener.last.succeed()

    scheduler.advance(60)

    assert conn.online is True
    assert recorder.errors == []


def test_short_chunks_dropped_and_delimiters_stripped(make_connection, opener, recorder) -> None:
    conn = make_connection()
    conn.start()
    opener.last.succeed()
    protocol = opener.last.protocol

    protocol.data_received(b"\xc0")
    protocol.data_received(b"\xc0\xc0")
    protocol.data_received(b"\xc0\x00\xc0")
    protocol.data_received(b"\xc0\x00ab\xc0")

    assert recorder.chunks == [b"\x00ab"]


def test_stop_cancels_everything_and_silences_callbacks(
    make_connection, opener, scheduler, recorder
) -> None:
    conn = make_connection()
    conn.start()
    opener.last.fail()
    assert scheduler.pending

    conn.stop()

    assert conn.phase is ConnectionPhase.STOPPED
    assert scheduler.pending == []
    scheduler.advance(3600)
    assert len(opener.attempts) == 1
    assert len(recorder.errors) == 1


def test_stop_while_online_aborts_transport(make_connection, opener, scheduler, recorder) -> None:
    conn = make_connection(idle_timeout=30)
    conn.start()
    transport = opener.last.succeed()
    protocol = opener.last.protocol
    states_before = list(recorder.states)

    conn.stop()
    # The transport reports the close after abort; nothing may react to it.
    protocol.connection_lost(None)
    protocol.data_received(b"\xc0\x00abcd\xc0")

    assert transport.aborted is True
    assert conn.send_handle is None
    assert scheduler.pending == []
    assert recorder.states == states_before
    assert recorder.chunks == []
    assert recorder.errors == []


def test_stop_while_connecting_cancels_open(make_connection, opener, scheduler) -> None:
    conn = make_connection()
    conn.start()
    pending = opener.last

    conn.stop()

    assert pending.cancelled is True
    assert scheduler.pending == []
    assert pending.succeed().aborted is True


def test_idle_timeout_half_closes(make_connection, opener, scheduler) -> None:
    conn = make_connection(idle_timeout=30)
    conn.start()
    transport = opener.last.succeed()

    scheduler.advance(20)
    opener.last.protocol.data_received(b"\xc0\x00abc\xc0")
    scheduler.advance(20)
    assert transport.eof_written is False

    scheduler.advance(15)
    assert transport.eof_written is True


def test_idle_timeout_defaults_to_ten_seconds(make_connection, opener, scheduler) -> None:
    conn = make_connection()
    conn.start()
    transport = opener.last.succeed()

    scheduler.advance(9.9)
    assert transport.eof_written is False
    scheduler.advance(0.2)
    assert transport.eof_written is True
    assert conn.online is True


def test_zero_idle_timeout_never_half_closes(make_connection, opener, scheduler) -> None:
    conn = make_connection(idle_timeout=0)
    conn.start()
    transport = opener.last.succeed()

    scheduler.advance(3600)

    assert transport.eof_written is False
    assert scheduler.pending == []


def test_start_is_idempotent(make_connection, opener) -> None:
    conn = make_connection()
    conn.start()
    conn.start()
    assert len(opener.attempts) == 1
