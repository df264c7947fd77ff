"""neo-aprs commands (bridge, init, diagnostics)."""

from .bridge import run_bridge
from .diagnostics import run_diagnostics
from .init import run_init

__all__ = ["run_bridge", "run_diagnostics", "run_init"]
