"""Terminal output helpers for issuer (ANSI color when the stream is a TTY)."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

RULE_WIDTH = 60


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def supports_color(stream: TextIO | None = None) -> bool:
    """Honour NO_COLOR and TERM=dumb; only color real terminals."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    if not supports_color(stream):
        return text
    return f"{Colors.BOLD if bold else ''}{color}{text}{Colors.RESET}"


def _emit(glyph: str, color: str, message: str, stream: TextIO) -> None:
    print(f"{colorize(glyph, color, bold=True, stream=stream)} {message}", file=stream)


def print_success(message: str, stream: TextIO | None = None) -> None:
    _emit("✓", Colors.GREEN, message, stream or sys.stdout)


def print_error(message: str, stream: TextIO | None = None) -> None:
    _emit("✗", Colors.RED, message, stream or sys.stderr)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    _emit("⚠", Colors.YELLOW, message, stream or sys.stdout)


def print_info(message: str, stream: TextIO | None = None) -> None:
    _emit("ℹ", Colors.BLUE, message, stream or sys.stdout)


def print_header(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize(message, Colors.CYAN, bold=True, stream=stream), file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print aligned ``key  value`` rows between two rules."""
    stream = stream or sys.stdout
    width = max((len(k) for k, _ in items), default=0)
    rule = colorize("─" * RULE_WIDTH, Colors.DIM, stream=stream)
    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(rule, file=stream)
    for key, value in items:
        text = str(value)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            text = colorize(text, Colors.GREEN, bold=True, stream=stream)
        print(f"  {key.ljust(width)}  {text}", file=stream)
    print(rule, file=stream)


def prompt(question: str, stream: TextIO | None = None) -> str:
    """Ask on ``stream`` and read one line from stdin; EOF reads as empty."""
    stream = stream or sys.stdout
    print(question, end="", file=stream, flush=True)
    try:
        return input()
    except EOFError:
        return ""


__all__ = [
    "Colors",
    "colorize",
    "print_error",
    "print_header",
    "print_info",
    "print_success",
    "print_summary_box",
    "print_warning",
    "prompt",
    "supports_color",
]
