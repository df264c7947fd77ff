"""ANSI color helpers for the diagnostics report."""

from __future__ import annotations

import os
import sys
from typing import Literal, TextIO

ColorLevel = Literal["ok", "warning", "error", "info"]

_RESET = "\x1b[0m"
_COLORS = {
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "red": "\x1b[31m",
    "blue": "\x1b[34m",
}
_LEVELS: dict[str, tuple[str, str]] = {
    "ok": ("OK", "green"),
    "warning": ("WARNING", "yellow"),
    "error": ("ERROR", "red"),
    "info": ("INFO", "blue"),
}


def supports_color(stream: TextIO | None = None) -> bool:
    """True when ``stream`` (stdout by default) is a color-capable terminal."""
    if os.getenv("NO_COLOR") or os.getenv("TERM") == "dumb":
        return False
    stream = stream or sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def color_text(text: str, *, color: str = "blue", enabled: bool = True) -> str:
    code = _COLORS.get(color)
    if not enabled or code is None:
        return text
    return f"{code}{text}{_RESET}"


def status_label(level: ColorLevel | str, *, enabled: bool = True) -> str:
    """Fixed-width ``[LEVEL  ]`` tag; unknown levels render as INFO."""
    name, color = _LEVELS.get(level.lower(), _LEVELS["info"])
    return color_text(f"[{name:<7}]", color=color, enabled=enabled)
