"""Connection resilience and APRS/telemetry translation."""

from .beacon import BeaconTransmitter, build_payload  # noqa: F401
from .connection import ConnectionPhase, TncConnection, open_tcp  # noqa: F401
from .manager import BridgeManager  # noqa: F401
from .presence import PresenceTracker, format_connection_status  # noqa: F401
from .scheduler import LoopScheduler, Scheduler  # noqa: F401
from .status import StatusReporter  # noqa: F401
from .telemetry import TelemetryDecoder  # noqa: F401

__all__ = [
    "BeaconTransmitter",
    "build_payload",
    "ConnectionPhase",
    "TncConnection",
    "open_tcp",
    "BridgeManager",
    "PresenceTracker",
    "format_connection_status",
    "LoopScheduler",
    "Scheduler",
    "StatusReporter",
    "TelemetryDecoder",
]
