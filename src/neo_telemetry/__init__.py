"""Telemetry bus infrastructure: delta models, bus protocol and MQTT adapter."""

from neo_telemetry.bus import TelemetryBus
from neo_telemetry.models import SELF_CONTEXT, Delta, PathValue, SubscriptionPath, Update
from neo_telemetry.mqtt_bus import MqttBus

__all__ = [
    "TelemetryBus",
    "SELF_CONTEXT",
    "Delta",
    "PathValue",
    "SubscriptionPath",
    "Update",
    "MqttBus",
]
