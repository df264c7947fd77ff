import argparse
import logging
import os
import sys
import time

from neo_core import config as config_module

LOG_LEVEL_ENV_VAR = "NEO_APRS_LOG_LEVEL"
LOG_FILENAME = "neo-aprs.log"


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help="Path to config file")
    p.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Logging level",
    )


def build_parser() -> argparse.ArgumentParser:
    from neo_aprs import __version__

    parser = argparse.ArgumentParser(
        prog="neo-aprs", description="Bridge vessel telemetry and APRS via KISS TNCs"
    )
    parser.add_argument("--version", action="version", version=f"neo-aprs {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    bridge = subparsers.add_parser("bridge", help="Run the telemetry/APRS bridge")
    _add_common_flags(bridge)
    bridge.add_argument(
        "--duration", type=float, help="Optional run duration (seconds)"
    )
    bridge.add_argument(
        "--idle-timeout",
        type=float,
        default=10.0,
        help="Half-close a TNC link after this many seconds without inbound data (0 disables)",
    )

    init = subparsers.add_parser("init", help="Write a default configuration file")
    _add_common_flags(init)
    init.add_argument(
        "--force", action="store_true", help="Overwrite an existing configuration"
    )
    init.add_argument("--callsign", help="Beacon callsign")
    init.add_argument("--kiss-host", help="Direwolf/KISS host")
    init.add_argument("--kiss-port", type=int, help="Direwolf/KISS TCP port")

    diag = subparsers.add_parser("diagnostics", help="Check config, TNCs and broker")
    _add_common_flags(diag)
    diag.add_argument(
        "--json", action="store_true", help="Emit the report as JSON"
    )
    diag.add_argument(
        "--verbose", action="store_true", help="Show extended diagnostic information"
    )
    diag.add_argument("--no-color", action="store_true", help="Disable ANSI colors")

    return parser


def _resolve_log_level(candidate: str | None) -> int:
    aliases = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    for value in (candidate, os.getenv(LOG_LEVEL_ENV_VAR)):
        if not value:
            continue
        stripped = value.strip()
        if not stripped:
            continue
        lower = stripped.lower()
        if lower in aliases:
            return aliases[lower]
        if stripped.isdigit():
            return int(stripped)
    return logging.INFO


def _configure_logging(level_name: str | None) -> None:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers: list[logging.Handler] = [stream_handler]

    try:
        log_dir = config_module.get_logs_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILENAME, encoding="utf-8")
    except OSError:
        # Read-only home or similar; stdout logging still works.
        file_handler = None
    if file_handler is not None:
        file_formatter = logging.Formatter(
            "%(asctime)sZ %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"
        )
        file_formatter.converter = time.gmtime
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=_resolve_log_level(level_name), handlers=handlers, force=True)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(getattr(args, "log_level", None))

    if args.command == "bridge":
        from neo_aprs.commands.bridge import run_bridge

        return run_bridge(args)
    elif args.command == "init":
        from neo_aprs.commands.init import run_init

        return run_init(args)
    elif args.command == "diagnostics":
        from neo_aprs.commands.diagnostics import run_diagnostics

        return run_diagnostics(args)
    else:
        parser.error("Unknown command")

    return 0


if __name__ == "__main__":
    sys.exit(main())
