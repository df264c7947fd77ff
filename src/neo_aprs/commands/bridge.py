"""Runtime command: bridge the telemetry bus and the configured TNCs."""

from __future__ import annotations

import asyncio
import logging
import signal
from argparse import Namespace
from typing import Optional

from neo_core import config as config_module
from neo_core.config import BridgeConfig
from neo_telemetry.mqtt_bus import MqttBus

from neo_aprs.bridge.connection import IDLE_TIMEOUT
from neo_aprs.bridge.manager import BridgeManager
from neo_aprs.bridge.scheduler import LoopScheduler

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def run_bridge(args: Namespace) -> int:
    """Run the bridge until SIGINT/SIGTERM (or ``--duration`` seconds)."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))
    try:
        bridge_config = config_module.load_config(config_path)
    except FileNotFoundError:
        logger.error("Config not found at %s; run `neo-aprs init` first.", config_path)
        return 1
    except ValueError as exc:
        logger.error("Config invalid: %s", exc)
        return 1

    from neo_aprs import __version__

    logger.info(
        "neo-aprs v%s starting bridge (callsign=%s, connections=%d, mqtt=%s:%s)",
        __version__,
        bridge_config.beacon.callsign,
        len(bridge_config.enabled_connections),
        bridge_config.mqtt.host,
        bridge_config.mqtt.port,
    )
    try:
        return asyncio.run(
            serve(
                bridge_config,
                duration=getattr(args, "duration", None),
                idle_timeout=getattr(args, "idle_timeout", IDLE_TIMEOUT),
            )
        )
    except KeyboardInterrupt:
        logger.info("Interrupted; bridge stopped")
        return 0


async def serve(
    bridge_config: BridgeConfig,
    *,
    duration: Optional[float] = None,
    idle_timeout: float = IDLE_TIMEOUT,
    bus: Optional[MqttBus] = None,
) -> int:
    loop = asyncio.get_running_loop()
    if bus is None:
        bus = MqttBus(bridge_config.mqtt, loop=loop)
    try:
        # paho's connect blocks; keep it off the loop thread.
        await loop.run_in_executor(None, bus.connect)
    except (OSError, RuntimeError) as exc:
        logger.error(
            "MQTT broker %s:%s unreachable: %s",
            bridge_config.mqtt.host,
            bridge_config.mqtt.port,
            exc,
        )
        return 1

    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    manager = BridgeManager(
        bridge_config,
        bus,
        scheduler=LoopScheduler(loop),
        idle_timeout=idle_timeout,
    )
    manager.start()
    try:
        if duration:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=duration)
            except asyncio.TimeoutError:
                logger.info("Run duration of %ss reached", duration)
        else:
            await stop_event.wait()
    finally:
        manager.stop()
        bus.close()
    return 0


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            logger.debug("Signal handler for %s unavailable", signum)
