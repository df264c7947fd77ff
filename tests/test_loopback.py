"""End-to-end tests against a local KISS TCP server on the real event loop."""

from __future__ import annotations

import asyncio

from neo_aprs.bridge.manager import BridgeManager
from neo_aprs.bridge.scheduler import LoopScheduler
from neo_aprs.commands.bridge import serve
from neo_core.config import BeaconConfig, BridgeConfig, TncEndpointConfig
from neo_telemetry.models import SELF_CONTEXT

from conftest import FakeBus

WX_REPORT = "@150945z4903.50N/07201.75W_220/004g005t077h50b10132"


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def _config(port: int) -> BridgeConfig:
    return BridgeConfig(
        beacon=BeaconConfig(callsign="NOCALL", note="loopback"),
        connections=[TncEndpointConfig(host="127.0.0.1", port=port, transmit=True)],
    )


def test_frames_flow_both_ways_over_tcp(wire_frame) -> None:
    bus = FakeBus()
    received = bytearray()

    async def scenario() -> None:
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            writer.write(wire_frame("KE7XYZ-13", WX_REPORT))
            await writer.drain()
            while True:
                try:
                    data = await reader.read(1024)
                except ConnectionError:
                    break
                if not data:
                    break
                received.extend(data)
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        manager = BridgeManager(_config(port), bus, scheduler=LoopScheduler())
        try:
            manager.start()
            await _wait_for(lambda: bus.published)
            assert manager.connections[0].online is True

            bus.emit(SELF_CONTEXT, "navigation.position", {"latitude": 45.5, "longitude": -122.75})
            await _wait_for(lambda: b"loopback" in received)
        finally:
            manager.stop()
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())

    assert bus.published[0].context == "meteo.KE7XYZ"
    assert received.startswith(b"\x00")
    assert received.endswith(b"\xc0")
    assert b"=4530.00N/12245.00W/Y loopback" in received


def test_refused_tnc_reports_error_and_keeps_retrying() -> None:
    bus = FakeBus()

    async def scenario() -> None:
        # Grab a free port, then close it so connects are refused.
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        manager = BridgeManager(
            _config(port), bus, scheduler=LoopScheduler(), reconnect_delay=0.05
        )
        try:
            manager.start()
            await _wait_for(lambda: bus.errors)
            await asyncio.sleep(0.2)
            assert manager.connections[0].attempt > 1
        finally:
            manager.stop()

    asyncio.run(scenario())

    assert bus.errors[0].startswith("TNC 127.0.0.1:")
    assert bus.statuses[-1] == "Not connected to any TNC, 0 stations online"


class ServeBus(FakeBus):
    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.connected = False
        self.closed = False

    def connect(self) -> None:
        if self.fail:
            raise RuntimeError("broker down")
        self.connected = True

    def close(self) -> None:
        self.closed = True


def test_serve_runs_for_duration_and_cleans_up() -> None:
    bus = ServeBus()
    cfg = _config(1)

    exit_code = asyncio.run(serve(cfg, duration=0.1, bus=bus))  # type: ignore[arg-type]

    assert exit_code == 0
    assert bus.connected and bus.closed
    assert bus.active_subscriptions == []
    assert bus.statuses[0] == "Not connected to any TNC, 0 stations online"


def test_serve_fails_when_broker_unreachable() -> None:
    bus = ServeBus(fail=True)

    exit_code = asyncio.run(serve(_config(1), duration=0.1, bus=bus))  # type: ignore[arg-type]

    assert exit_code == 1
    assert bus.statuses == []
