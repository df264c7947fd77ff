"""neo_core: shared primitives for the neo-aprs bridge.

Hosts configuration, config layering, terminal helpers, connectivity
diagnostics and time utilities.
"""

__all__ = []
