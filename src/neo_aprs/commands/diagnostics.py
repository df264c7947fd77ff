"""Diagnostics command: check config, TNC endpoints and the MQTT broker."""

from __future__ import annotations

import json
import logging
import sys
import time
from argparse import Namespace
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from neo_core import config as config_module
from neo_core import term
from neo_core.config import BridgeConfig
from neo_core.diagnostics_helpers import check_tcp_endpoint

from importlib import metadata as importlib_metadata

SectionStatus = str

REQUIRED_PACKAGES = ("paho-mqtt", "tomli-w")

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(slots=True)
class Section:
    """Represents the status of a diagnostic check."""

    name: str
    status: SectionStatus
    message: str
    details: dict[str, Any]


def run_diagnostics(args: Namespace) -> int:
    """Run diagnostics and emit results in the requested format."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))

    sections: list[Section] = [_check_environment()]
    config_section, bridge_config = _check_config(config_path)
    sections.append(config_section)
    sections.extend(_check_tncs(bridge_config))
    sections.append(_check_mqtt(bridge_config))

    summary = _summarize_sections(sections)
    if getattr(args, "json", False):
        from neo_aprs import __version__

        report = _sections_to_mapping(sections)
        report["meta"] = {
            "tool": "neo-aprs",
            "version": __version__,
            "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        report["summary"] = summary
        indent = 2 if getattr(args, "verbose", False) else None
        print(json.dumps(report, indent=indent, default=str))
    else:
        color = term.supports_color() and not getattr(args, "no_color", False)
        _print_text_report(sections, verbose=getattr(args, "verbose", False), color=color)
        _log_summary(summary)

    return 1 if summary["errors"] else 0


def _check_environment() -> Section:
    venv_active = sys.prefix != getattr(sys, "base_prefix", sys.prefix)
    packages: dict[str, str | None] = {}
    missing: list[str] = []
    for package in REQUIRED_PACKAGES:
        try:
            packages[package] = importlib_metadata.version(package)
        except importlib_metadata.PackageNotFoundError:
            packages[package] = None
            missing.append(package)

    status: SectionStatus = "ok" if venv_active else "warning"
    message = "Virtualenv active" if venv_active else "Using system interpreter"
    if missing:
        status = "error"
        message += f"; Missing packages: {', '.join(missing)}"
    else:
        message += "; Required packages present"

    details = {
        "python_version": sys.version.split()[0],
        "venv_active": venv_active,
        "packages": packages,
    }
    return Section("Environment", status, message, details)


def _check_config(config_path: Path) -> tuple[Section, BridgeConfig | None]:
    if not config_path.exists():
        return (
            Section("Config", "error", f"No config file found at {config_path}", {"path": str(config_path)}),
            None,
        )
    try:
        bridge_config = config_module.load_config(config_path)
    except ValueError as exc:
        return (
            Section("Config", "error", f"Failed to load configuration: {exc}", {"path": str(config_path)}),
            None,
        )

    details: dict[str, Any] = {
        "path": str(config_path),
        "summary": config_module.config_summary(bridge_config),
    }
    if bridge_config.config_errors:
        details["errors"] = list(bridge_config.config_errors)
        return (
            Section("Config", "error", "Invalid TNC connection entries", details),
            bridge_config,
        )
    if not bridge_config.enabled_connections:
        return Section("Config", "warning", "No TNC connections enabled", details), bridge_config
    beacon = bridge_config.beacon
    return (
        Section("Config", "ok", f"Loaded config for {beacon.callsign}", details),
        bridge_config,
    )


def _check_tncs(bridge_config: BridgeConfig | None) -> list[Section]:
    if bridge_config is None:
        return [
            Section("TNC", "warning", "Configuration unavailable; skipping KISS connectivity check", {})
        ]
    sections: list[Section] = []
    for endpoint in bridge_config.enabled_connections:
        name = f"TNC {endpoint.address}"
        result = check_tcp_endpoint(endpoint.host, endpoint.port, timeout=1.0)
        details: dict[str, Any] = {"transmit": endpoint.transmit}
        if endpoint.description:
            details["description"] = endpoint.description
        if result.success:
            details["latency_ms"] = result.latency_ms
            sections.append(Section(name, "ok", result.describe("KISS endpoint"), details))
            continue
        details["error"] = result.error
        # The bridge retries unreachable TNCs forever, so this is not fatal.
        sections.append(Section(name, "warning", result.describe("KISS endpoint"), details))
    return sections


def _check_mqtt(bridge_config: BridgeConfig | None) -> Section:
    if bridge_config is None:
        return Section("MQTT", "warning", "Configuration unavailable; skipping broker check", {})
    host, port = bridge_config.mqtt.host, bridge_config.mqtt.port
    result = check_tcp_endpoint(host, port, timeout=2.0)
    message = result.describe("MQTT broker")
    if result.success:
        return Section("MQTT", "ok", message, {"latency_ms": result.latency_ms})
    return Section("MQTT", "error", message, {"error": result.error})


def _sections_to_mapping(sections: Iterable[Section]) -> dict[str, Any]:
    report: dict[str, Any] = {}
    for section in sections:
        key = section.name.lower().replace(" ", "_")
        report[key] = {
            "status": section.status,
            "message": section.message,
            "details": section.details,
        }
    return report


def _summarize_sections(sections: Iterable[Section]) -> dict[str, Any]:
    sections = list(sections)
    errors = [section.name for section in sections if section.status == "error"]
    warnings = [section.name for section in sections if section.status == "warning"]
    return {
        "errors": len(errors),
        "warnings": len(warnings),
        "error_sections": errors,
        "warning_sections": warnings,
    }


def _log_summary(summary: dict[str, Any]) -> None:
    level = logging.INFO
    if summary.get("errors", 0):
        level = logging.ERROR
    elif summary.get("warnings", 0):
        level = logging.WARNING

    logger.log(
        level,
        "Diagnostics summary: errors=%s warnings=%s error_sections=%s warning_sections=%s",
        summary.get("errors", 0),
        summary.get("warnings", 0),
        ", ".join(summary.get("error_sections", [])) or "-",
        ", ".join(summary.get("warning_sections", [])) or "-",
    )


def _print_text_report(sections: Iterable[Section], *, verbose: bool, color: bool) -> None:
    for section in sections:
        logger.info(
            "%s %s: %s",
            term.status_label(section.status, enabled=color),
            term.color_text(section.name, enabled=color),
            section.message,
        )
        if verbose and section.details:
            for key, value in section.details.items():
                logger.info("    %s: %s", key, _format_detail_value(value))


def _format_detail_value(value: Any) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items()) or "{}"
    if isinstance(value, (list, tuple, set)):
        return ", ".join(map(str, value))
    return str(value)
