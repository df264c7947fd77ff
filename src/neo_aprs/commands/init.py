"""Write a starter configuration file."""

from __future__ import annotations

import dataclasses
import logging
from argparse import Namespace

from neo_core import config as config_module

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def run_init(args: Namespace) -> int:
    config_path = config_module.resolve_config_path(getattr(args, "config", None))
    if config_path.exists() and not getattr(args, "force", False):
        logger.error("Config already exists at %s; use --force to overwrite.", config_path)
        return 1

    bridge_config = config_module.default_config()
    callsign = getattr(args, "callsign", None)
    if callsign:
        try:
            beacon = config_module.BeaconConfig.from_dict(
                {**bridge_config.beacon.to_dict(), "callsign": callsign}
            )
        except ValueError as exc:
            logger.error("Invalid callsign: %s", exc)
            return 1
        bridge_config.beacon = beacon

    kiss_host = getattr(args, "kiss_host", None)
    kiss_port = getattr(args, "kiss_port", None)
    if kiss_host or kiss_port:
        endpoint = bridge_config.connections[0]
        bridge_config.connections[0] = dataclasses.replace(
            endpoint,
            host=kiss_host or endpoint.host,
            port=kiss_port or endpoint.port,
        )

    written = config_module.save_config(bridge_config, config_path)
    logger.info("Wrote configuration to %s", written)
    logger.info("%s", config_module.config_summary(bridge_config))
    return 0
