"""Run ledger: one JSON file per live run.

Layout::

    <config dir>/logs/<run_id>.json

The config dir is ``$ISSUER_CONFIG_DIR``, else ``$XDG_CONFIG_HOME/issuer``,
else ``~/.config/issuer``, else ``./.issuer`` when no home directory can be
determined. Files are rewritten atomically (tmp file + replace) on every
update so a crash never leaves a truncated record.

A run starts ``in_progress`` and is finalized exactly once, as ``completed``
or ``failed``.
"""

from __future__ import annotations

import json
import os
import secrets
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import RunNotFoundError, RunStateError, redact
from .logging import get_logger

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUSES = (STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FAILED)

ARTIFACT_KINDS = ("issues", "versions", "tags")
_COUNTERS = {
    "issues": "issues_created",
    "versions": "versions_created",
    "tags": "tags_created",
}
LOGS_DIRNAME = "logs"


def default_config_dir() -> Path:
    explicit = os.environ.get("ISSUER_CONFIG_DIR")
    if explicit:
        return Path(explicit).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "issuer"
    try:
        return Path.home() / ".config" / "issuer"
    except RuntimeError:
        return Path.cwd() / ".issuer"


def generate_run_id(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"run_{stamp}_{secrets.token_hex(4)}"


class RunTracker:
    """Create, update and query run records under ``base_dir/logs``."""

    def __init__(
        self,
        base_dir: str | Path | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir) if base_dir else default_config_dir()
        self._clock = clock or (lambda: datetime.now().astimezone())
        self.logger = get_logger()

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / LOGS_DIRNAME

    def path_for(self, run_id: str) -> Path:
        if not run_id or "/" in run_id or "\\" in run_id or run_id.startswith("."):
            raise RunNotFoundError(f"Invalid run id: {run_id!r}")
        return self.logs_dir / f"{run_id}.json"

    def _now(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def _save(self, run_id: str, data: dict[str, Any]) -> None:
        path = self.path_for(run_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        tmp.replace(path)

    def _load(self, path: Path) -> dict[str, Any] | None:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self.logger.warning(f"Could not parse run log file {path}: {exc}")
            return None
        return raw if isinstance(raw, dict) else None

    def _require(self, run_id: str) -> dict[str, Any]:
        path = self.path_for(run_id)
        if not path.exists():
            raise RunNotFoundError(f"Run not found: {run_id}")
        data = self._load(path)
        if data is None:
            raise RunNotFoundError(f"Run record unreadable: {run_id}")
        return data

    # ---- lifecycle ----------------------------------------------------
    def start(self, metadata: dict[str, Any] | None = None) -> str:
        run_id = generate_run_id(self._clock())
        data: dict[str, Any] = {
            "run_id": run_id,
            "started_at": self._now(),
            "status": STATUS_IN_PROGRESS,
            "metadata": dict(metadata or {}),
            "artifacts": {kind: [] for kind in ARTIFACT_KINDS},
            "summary": {counter: 0 for counter in _COUNTERS.values()},
        }
        self._save(run_id, data)
        self.logger.log_operation("run_start", run_id=run_id)
        return run_id

    def log_artifact(self, run_id: str, kind: str, artifact: dict[str, Any]) -> None:
        if kind not in ARTIFACT_KINDS:
            raise ValueError(f"Unknown artifact kind {kind!r}; expected one of {ARTIFACT_KINDS}")
        data = self._require(run_id)
        artifacts = data.setdefault("artifacts", {})
        artifacts.setdefault(kind, []).append(dict(artifact))
        summary = data.setdefault("summary", {})
        counter = _COUNTERS[kind]
        summary[counter] = int(summary.get(counter, 0)) + 1
        self._save(run_id, data)

    def _finalize(self, run_id: str, status: str, stamp_key: str) -> dict[str, Any]:
        data = self._require(run_id)
        current = data.get("status")
        if current != STATUS_IN_PROGRESS:
            raise RunStateError(f"Run {run_id} is already {current}; cannot mark it {status}")
        data["status"] = status
        data[stamp_key] = self._now()
        return data

    def complete(self, run_id: str, processed_count: int | None = None) -> None:
        data = self._finalize(run_id, STATUS_COMPLETED, "completed_at")
        if processed_count is not None:
            data.setdefault("summary", {})["issues_processed"] = processed_count
        self._save(run_id, data)
        self.logger.log_operation("run_complete", run_id=run_id, processed=processed_count)

    def fail(self, run_id: str, message: str) -> None:
        data = self._finalize(run_id, STATUS_FAILED, "failed_at")
        data["error"] = redact(message)
        self._save(run_id, data)
        self.logger.log_operation("run_fail", run_id=run_id)

    # ---- queries ------------------------------------------------------
    def get(self, run_id: str) -> dict[str, Any] | None:
        path = self.path_for(run_id)
        if not path.exists():
            return None
        return self._load(path)

    def list_runs(self, status: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
        """Run records, newest first, optionally filtered by ``status``."""
        if not self.logs_dir.is_dir():
            return []
        runs: list[dict[str, Any]] = []
        for path in self.logs_dir.glob("*.json"):
            data = self._load(path)
            if data is None:
                continue
            if status and data.get("status") != status:
                continue
            runs.append(data)
        runs.sort(key=lambda r: (str(r.get("started_at", "")), str(r.get("run_id", ""))), reverse=True)
        return runs[:limit] if limit is not None and limit >= 0 else runs

    def delete(self, run_id: str) -> bool:
        path = self.path_for(run_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def clean(self) -> int:
        """Remove every run record; returns how many were removed."""
        if not self.logs_dir.is_dir():
            return 0
        removed = 0
        for path in self.logs_dir.glob("*.json"):
            path.unlink()
            removed += 1
        return removed

    list = list_runs


__all__ = [
    "ARTIFACT_KINDS",
    "STATUSES",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "STATUS_IN_PROGRESS",
    "RunTracker",
    "default_config_dir",
    "generate_run_id",
]
