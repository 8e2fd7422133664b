"""Centralized retry / backoff helpers for the platform gateway.

``run_with_retries`` wraps a thunk performing one HTTP request. Transient
outcomes are retried with exponential backoff plus jitter:

* connection errors and timeouts raised by ``requests``
* 429 responses, 403 responses mentioning a rate limit, and 5xx responses

An explicit ``Retry-After`` header (or a "wait N seconds" hint in the body)
overrides the computed backoff. Everything else returns immediately; the
caller decides whether the response is an error.

Environment overrides:
  ISSUER_RETRY_ATTEMPTS (default 3)
  ISSUER_RETRY_BASE (seconds base, default 0.5)
  ISSUER_RETRY_MAX_SLEEP (cap in seconds, default 60)
"""

from __future__ import annotations

import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests

from .logging import get_logger

T = TypeVar("T")

TRANSIENT_TOKENS = (
    "rate limit",
    "abuse detection",
    "secondary rate",
)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_FORBIDDEN = 403
HTTP_SERVER_ERROR = 500

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()


def _env_float(name: str, default: str) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return float(default)


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: int(_env_float("ISSUER_RETRY_ATTEMPTS", "3")))
    base_sleep: float = field(default_factory=lambda: _env_float("ISSUER_RETRY_BASE", "0.5"))
    max_sleep: float = field(default_factory=lambda: _env_float("ISSUER_RETRY_MAX_SLEEP", "60"))


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from header or body text."""
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


def is_transient(output: str) -> bool:
    out_lower = output.lower()
    return any(tok in out_lower for tok in TRANSIENT_TOKENS)


def is_transient_response(response: Any) -> bool:
    status = getattr(response, "status_code", None)
    if not isinstance(status, int):
        return False
    if status == HTTP_TOO_MANY_REQUESTS or status >= HTTP_SERVER_ERROR:
        return True
    if status == HTTP_FORBIDDEN:
        return is_transient(getattr(response, "text", "") or "")
    return False


def _response_hint(response: Any) -> str:
    headers = getattr(response, "headers", None) or {}
    retry_after = headers.get("Retry-After") if hasattr(headers, "get") else None
    if retry_after:
        return f"Retry-After: {retry_after}"
    return getattr(response, "text", "") or ""


def _compute_sleep(attempt: int, cfg: RetryConfig, hint: str) -> float:
    explicit = _extract_explicit_backoff(hint)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    if cfg.max_sleep >= 0:
        sleep_for = min(sleep_for, cfg.max_sleep)
    return sleep_for


def run_with_retries(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    logger = get_logger()
    for attempt in range(1, attempts + 1):
        try:
            result = fn()
        except (requests.ConnectionError, requests.Timeout) as exc:
            if attempt >= attempts:
                raise
            sleep_for = _compute_sleep(attempt, cfg, str(exc))
            logger.warning(
                f"[retry] transport error, attempt {attempt}/{attempts}, sleeping {sleep_for:.2f}s",
                error=str(exc),
            )
            sleep(sleep_for)
            continue
        if attempt < attempts and is_transient_response(result):
            sleep_for = _compute_sleep(attempt, cfg, _response_hint(result))
            logger.warning(
                f"[retry] transient response {getattr(result, 'status_code', '?')}, "
                f"attempt {attempt}/{attempts}, sleeping {sleep_for:.2f}s"
            )
            sleep(sleep_for)
            continue
        return result
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "is_transient", "is_transient_response", "run_with_retries"]
