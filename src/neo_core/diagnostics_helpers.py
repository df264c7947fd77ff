"""TCP reachability checks used by ``neo-aprs diagnostics``."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass


@dataclass(slots=True)
class ConnectivityResult:
    """Outcome of a single TCP connect attempt."""

    host: str
    port: int
    success: bool
    latency_ms: float | None = None
    error: str | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def refused(self) -> bool:
        err = (self.error or "").lower()
        return "refused" in err or "errno 111" in err

    def describe(self, role: str) -> str:
        """One-line, human readable verdict for ``role`` (e.g. ``"MQTT broker"``)."""
        if self.success:
            return f"{role} reachable at {self.address}"
        if self.refused:
            return f"{role} refused connection at {self.address}"
        return f"Unable to reach {role} at {self.address}: {self.error}"


def check_tcp_endpoint(host: str, port: int, timeout: float = 1.0) -> ConnectivityResult:
    """Open and immediately close a TCP connection, timing the handshake."""
    start = time.perf_counter()
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
        return ConnectivityResult(host, port, success=False, error=str(exc) or type(exc).__name__)
    latency = round((time.perf_counter() - start) * 1000, 1)
    sock.close()
    return ConnectivityResult(host, port, success=True, latency_ms=latency)
