"""Glue between a batch file on disk and the batch processor.

``post_file`` loads the YAML batch, runs it dry or live and optionally writes
the run summary as JSON. The summary is stamped with ``schemaVersion`` and
``generated_at`` so downstream tooling can evolve with it.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .core import BatchOverrides, Issuer
from .logging import get_logger
from .parser import load_batch

SUMMARY_SCHEMA_VERSION = 1


def enrich_summary(summary: dict[str, Any], *, source: Path | None = None) -> dict[str, Any]:
    enriched = dict(summary)
    enriched["schemaVersion"] = SUMMARY_SCHEMA_VERSION
    enriched["generated_at"] = datetime.now(timezone.utc).isoformat()
    if source is not None:
        enriched["source"] = str(source)
    return enriched


def write_summary(path: str | Path, summary: dict[str, Any]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")
    tmp.replace(target)
    return target


def post_file(
    issuer: Issuer,
    path: str | Path,
    overrides: BatchOverrides | None = None,
    *,
    dry_run: bool = False,
    token_env: str | None = None,
    summary_path: str | Path | None = None,
) -> dict[str, Any]:
    document = load_batch(path)
    summary = issuer.process(document, overrides, dry_run=dry_run, token_env=token_env)
    enriched = enrich_summary(summary, source=document.source)
    if summary_path:
        try:
            write_summary(summary_path, enriched)
        except OSError as exc:
            get_logger().log_error("Failed to write summary JSON", error=str(exc), path=str(summary_path))
    return enriched


__all__ = ["SUMMARY_SCHEMA_VERSION", "enrich_summary", "post_file", "write_summary"]
