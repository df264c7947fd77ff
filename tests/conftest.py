"""Shared fakes: a manual clock, a scripted TCP opener and an in-memory bus."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from neo_aprs.aprs.encoder import encode_frame
from neo_aprs.aprs.models import AprsFrameOut, StationAddress
from neo_telemetry.models import Delta, PathValue, Update


class FakeTimer:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Timers only fire when a test calls :meth:`advance`."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.timers: list[FakeTimer] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.now = max(self.now, timer.when)
            timer.fired = True
            timer.callback(*timer.args)
        self.now = target


class FakeTransport:
    def __init__(self) -> None:
        self.written: list[bytes] = []
        self.aborted = False
        self.closed = False
        self.eof_written = False

    def write(self, data: bytes) -> None:
        self.written.append(bytes(data))

    def abort(self) -> None:
        self.aborted = True

    def close(self) -> None:
        self.closed = True

    def can_write_eof(self) -> bool:
        return True

    def write_eof(self) -> None:
        self.eof_written = True


class FakePendingOpen:
    """One connect attempt; the test decides how it resolves."""

    def __init__(self, host: str, port: int, protocol: Any) -> None:
        self.host = host
        self.port = port
        self.protocol = protocol
        self.cancelled = False
        self.transport: FakeTransport | None = None

    def cancel(self) -> None:
        self.cancelled = True

    def succeed(self) -> FakeTransport:
        self.transport = FakeTransport()
        self.protocol.connection_made(self.transport)
        return self.transport

    def fail(self, exc: BaseException | None = None) -> None:
        self.protocol.connection_failed(exc or ConnectionRefusedError("connection refused"))


class FakeOpener:
    def __init__(self) -> None:
        self.attempts: list[FakePendingOpen] = []

    def __call__(self, host: str, port: int, protocol: Any) -> FakePendingOpen:
        pending = FakePendingOpen(host, port, protocol)
        self.attempts.append(pending)
        return pending

    @property
    def last(self) -> FakePendingOpen:
        return self.attempts[-1]

    def for_port(self, port: int) -> FakePendingOpen:
        return [a for a in self.attempts if a.port == port][-1]


class FakeBus:
    def __init__(self) -> None:
        self.subscriptions: list[dict[str, Any]] = []
        self.published: list[Delta] = []
        self.statuses: list[str] = []
        self.errors: list[str] = []

    def subscribe(self, context, paths, callback):
        entry = {"context": context, "paths": list(paths), "callback": callback, "active": True}
        self.subscriptions.append(entry)

        def unsubscribe() -> None:
            entry["active"] = False

        return unsubscribe

    def publish(self, delta: Delta) -> None:
        self.published.append(delta)

    def publish_status(self, text: str) -> None:
        self.statuses.append(text)

    def publish_error(self, text: str) -> None:
        self.errors.append(text)

    @property
    def active_subscriptions(self) -> list[dict[str, Any]]:
        return [s for s in self.subscriptions if s["active"]]

    def emit(self, context: str, path: str, value: Any) -> None:
        delta = Delta(context=context, updates=[Update(values=[PathValue(path, value)])])
        for sub in self.active_subscriptions:
            if sub["context"] == context and any(p.path == path for p in sub["paths"]):
                sub["callback"](delta)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def wire_frame() -> Callable[..., bytes]:
    """Build the bytes a TNC would send for an APRS report from ``source``."""

    def _build(source: str, info: str, path: tuple[str, ...] = ("WIDE1-1",)) -> bytes:
        frame = AprsFrameOut(
            source=StationAddress.parse(source),
            info=info,
            destination=StationAddress("APRS"),
            repeaters=[StationAddress.parse(hop) for hop in path],
        )
        return encode_frame(frame)

    return _build
