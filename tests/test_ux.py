"""Tests for terminal output helpers."""

from __future__ import annotations

import io

import pytest

from issuer import ux
from issuer.ux import (
    Colors,
    colorize,
    print_error,
    print_info,
    print_success,
    print_summary_box,
    print_warning,
)


def _tty() -> io.StringIO:
    stream = io.StringIO()
    stream.isatty = lambda: True  # type: ignore[method-assign]
    return stream


def test_colorize_with_tty_support(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TERM", "xterm-256color")

    result = colorize("test", Colors.RED, bold=True, stream=_tty())

    assert result == f"{Colors.BOLD}{Colors.RED}test{Colors.RESET}"


def test_colorize_respects_no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    assert colorize("test", Colors.RED, stream=_tty()) == "test"


def test_colorize_plain_for_non_tty() -> None:
    assert colorize("test", Colors.GREEN, stream=io.StringIO()) == "test"


@pytest.mark.parametrize(
    "printer,glyph",
    [(print_success, "✓"), (print_error, "✗"), (print_warning, "⚠"), (print_info, "ℹ")],
)
def test_status_printers(printer, glyph) -> None:
    stream = io.StringIO()
    printer("message", stream)
    assert stream.getvalue() == f"{glyph} message\n"


def test_print_error_defaults_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    print_error("bad")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "bad" in captured.err


def test_summary_box_aligns_keys() -> None:
    stream = io.StringIO()
    print_summary_box("Summary", [("Issues created", "2/3"), ("Tags", 1)], stream)
    lines = stream.getvalue().splitlines()
    assert "Summary" in lines[1]
    assert "  Issues created  2/3" in lines
    assert "  Tags            1" in lines


def test_prompt_reads_input(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("builtins.input", lambda: "y")
    stream = io.StringIO()
    assert ux.prompt("Create? ", stream) == "y"
    assert stream.getvalue() == "Create? "


def test_prompt_eof_reads_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    def _eof() -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", _eof)
    assert ux.prompt("Create? ", io.StringIO()) == ""
