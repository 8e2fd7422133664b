"""Runtime helpers for issuer CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

from .config import IssuerConfig, resolve_config
from .errors import ConfigError, IssuerError, ParseError, UserAbort, classify_error
from .logging import configure_logging, get_logger
from .ux import print_error

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_ABORTED = 130


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str | None], IssuerConfig] = resolve_config
) -> IssuerConfig:
    """Load the config for the argparse namespace and apply CLI overrides."""
    cfg = loader(getattr(args, "config", None))
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    level = getattr(args, "log_level", None)
    if level:
        cfg.logging_level = level
    if getattr(args, "auto_metadata", False):
        cfg.auto_versions = True
        cfg.auto_tags = True
    if getattr(args, "auto_versions", False):
        cfg.auto_versions = True
    if getattr(args, "auto_tags", False):
        cfg.auto_tags = True
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    return cfg


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler and map issuer errors to exit codes."""
    start = time.monotonic()
    logger = get_logger()
    try:
        result = handler()
        exit_code = int(result) if result is not None else EXIT_OK
    except UserAbort as exc:
        print_error(str(exc))
        exit_code = EXIT_ABORTED
    except (ConfigError, ParseError) as exc:
        print_error(f"Error: {exc}")
        exit_code = EXIT_USAGE
    except IssuerError as exc:
        info = classify_error(exc)
        print_error(f"Error: {info.message}")
        exit_code = EXIT_FAILURE
    logger.log_performance(
        f"command_{command}", (time.monotonic() - start) * 1000, exit_code=exit_code
    )
    return exit_code


__all__ = [
    "EXIT_ABORTED",
    "EXIT_FAILURE",
    "EXIT_OK",
    "EXIT_USAGE",
    "execute_command",
    "prepare_config",
]
