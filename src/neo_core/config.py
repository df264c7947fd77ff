"""Configuration loading and persistence helpers."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # type: ignore[import]

from neo_core.config_layering import load_layered_config

CONFIG_VERSION = 1
CONFIG_ENV_VAR = "NEO_APRS_CONFIG_PATH"
CONFIG_DIR_NAME = "neo-aprs"
CONFIG_FILENAME = "config.toml"

DEFAULT_KISS_PORT = 8001
DEFAULT_BEACON_INTERVAL_MIN = 15


def _xdg_path(env_var: str, default: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return default


def get_config_dir() -> Path:
    """Return the directory containing configuration files."""
    default = Path.home() / ".config"
    return _xdg_path("XDG_CONFIG_HOME", default) / CONFIG_DIR_NAME


def get_data_dir() -> Path:
    """Return the directory for runtime data/log files."""
    default = Path.home() / ".local" / "share"
    return _xdg_path("XDG_DATA_HOME", default) / CONFIG_DIR_NAME


def get_logs_dir() -> Path:
    return get_data_dir() / "logs"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve the configuration file path, honouring overrides."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / CONFIG_FILENAME


@dataclass(frozen=True, slots=True)
class TncEndpointConfig:
    """A single KISS-over-TCP TNC endpoint."""

    host: str
    port: int = DEFAULT_KISS_PORT
    enabled: bool = True
    transmit: bool = False
    description: str = ""

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "enabled": self.enabled,
            "transmit": self.transmit,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TncEndpointConfig:
        host = data.get("host")
        port = data.get("port")
        if not host or port in (None, ""):
            raise ValueError("TNC connection requires host and port")
        return cls(
            host=str(host),
            port=int(port),
            enabled=bool(data.get("enabled", True)),
            transmit=bool(data.get("transmit", False)),
            description=str(data.get("description", "")),
        )


@dataclass(slots=True)
class BeaconConfig:
    """Identity and payload settings for the outbound position beacon."""

    callsign: str = "NOCALL"
    ssid: int = 0
    symbol: str = "/Y"
    note: str = "https://signalk.org"
    enabled: bool = True
    interval: int = DEFAULT_BEACON_INTERVAL_MIN
    vessel_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "callsign": self.callsign,
            "ssid": self.ssid,
            "symbol": self.symbol,
            "note": self.note,
            "enabled": self.enabled,
            "interval": self.interval,
            "vessel_name": self.vessel_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BeaconConfig:
        callsign = str(data.get("callsign", "NOCALL")).strip().upper()
        if not callsign:
            raise ValueError("Beacon callsign must not be empty")
        ssid = int(data.get("ssid", 0) or 0)
        if not 0 <= ssid <= 15:
            raise ValueError(f"Beacon SSID must be between 0 and 15, got {ssid}")
        symbol = str(data.get("symbol", "/Y"))
        if len(symbol) != 2:
            raise ValueError(f"APRS symbol must be two characters, got {symbol!r}")
        interval = int(data.get("interval", DEFAULT_BEACON_INTERVAL_MIN))
        if interval <= 0:
            raise ValueError("Beacon interval must be a positive number of minutes")
        return cls(
            callsign=callsign,
            ssid=ssid,
            symbol=symbol,
            note=str(data.get("note", "https://signalk.org")),
            enabled=bool(data.get("enabled", True)),
            interval=interval,
            vessel_name=str(data.get("vessel_name", "")),
        )


@dataclass(slots=True)
class MqttConfig:
    host: str = "127.0.0.1"
    port: int = 1883
    topic_prefix: str = "signalk"
    client_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "topic_prefix": self.topic_prefix,
            "client_id": self.client_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MqttConfig:
        return cls(
            host=str(data.get("host", "127.0.0.1")),
            port=int(data.get("port", 1883)),
            topic_prefix=str(data.get("topic_prefix", "signalk")).strip("/"),
            client_id=str(data.get("client_id", "")),
        )


@dataclass(slots=True)
class BridgeConfig:
    """Complete bridge configuration.

    Endpoint-level problems do not abort loading; they are collected in
    ``config_errors`` so the bridge can report them and stay idle.
    """

    beacon: BeaconConfig = field(default_factory=BeaconConfig)
    connections: list[TncEndpointConfig] = field(default_factory=list)
    mqtt: MqttConfig = field(default_factory=MqttConfig)
    config_errors: list[str] = field(default_factory=list)

    @property
    def enabled_connections(self) -> list[TncEndpointConfig]:
        return [conn for conn in self.connections if conn.enabled]

    def to_dict(self) -> dict[str, Any]:
        """Convert the configuration to a TOML-serialisable dictionary."""
        return {
            "version": CONFIG_VERSION,
            "beacon": self.beacon.to_dict(),
            "connections": [conn.to_dict() for conn in self.connections],
            "mqtt": self.mqtt.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        """Construct from a dictionary (typically parsed from TOML)."""
        version = data.get("version", CONFIG_VERSION)
        if version != CONFIG_VERSION:
            raise ValueError(f"Unsupported config version: {version}")

        connections: list[TncEndpointConfig] = []
        errors: list[str] = []
        raw_connections = data.get("connections") or []
        if not isinstance(raw_connections, list):
            raise ValueError("'connections' must be an array of tables")
        for index, raw in enumerate(raw_connections):
            if not isinstance(raw, dict):
                errors.append(f"connections[{index}]: expected a table")
                continue
            try:
                connections.append(TncEndpointConfig.from_dict(raw))
            except (TypeError, ValueError) as exc:
                errors.append(f"connections[{index}]: {exc}")

        return cls(
            beacon=BeaconConfig.from_dict(data.get("beacon", {})),
            connections=connections,
            mqtt=MqttConfig.from_dict(data.get("mqtt", {})),
            config_errors=errors,
        )


def load_config(
    path: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> BridgeConfig:
    """Load persisted configuration, applying env and CLI overrides."""
    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise FileNotFoundError(config_path)
    data = load_layered_config(config_path, cli_overrides=cli_overrides)
    return BridgeConfig.from_dict(data)


def save_config(config: BridgeConfig, path: str | Path | None = None) -> Path:
    """Persist configuration to disk and return the file path."""
    config_path = resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    toml_text = tomli_w.dumps(config.to_dict())
    config_path.write_text(toml_text, encoding="utf-8")
    try:
        os.chmod(config_path, stat.S_IRUSR | stat.S_IWUSR)
    except PermissionError:  # pragma: no cover - some FS disallow chmod
        pass
    return config_path


def default_config() -> BridgeConfig:
    """Return a starter configuration with one local Direwolf endpoint."""
    return BridgeConfig(
        connections=[
            TncEndpointConfig(
                host="127.0.0.1",
                port=DEFAULT_KISS_PORT,
                description="Direwolf",
            )
        ]
    )


def config_summary(config: BridgeConfig) -> str:
    """Generate a human-readable summary of key settings."""
    beacon = config.beacon
    ident = beacon.callsign if not beacon.ssid else f"{beacon.callsign}-{beacon.ssid}"
    lines = [
        f"  Callsign : {ident} ({beacon.symbol})",
        f"  Beacon   : {'every %d min' % beacon.interval if beacon.enabled else 'disabled'}",
        f"  MQTT     : {config.mqtt.host}:{config.mqtt.port} ({config.mqtt.topic_prefix})",
    ]
    for conn in config.connections:
        flags = []
        if not conn.enabled:
            flags.append("disabled")
        if conn.transmit:
            flags.append("tx")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        label = f" {conn.description}" if conn.description else ""
        lines.append(f"  TNC      : {conn.address}{label}{suffix}")
    return "\n".join(lines)
