from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from issuer.errors import RunNotFoundError, RunStateError
from issuer.runs import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    RunTracker,
    default_config_dir,
    generate_run_id,
)


def _ticking_clock(start: datetime):
    state = {"now": start}

    def clock() -> datetime:
        state["now"] += timedelta(seconds=1)
        return state["now"]

    return clock


def test_start_persists_in_progress_record(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start({"project": "acme/widgets", "issues_planned": 2})
    assert (tmp_path / "logs" / f"{run_id}.json").exists()
    record = tracker.get(run_id)
    assert record["status"] == STATUS_IN_PROGRESS
    assert record["metadata"]["project"] == "acme/widgets"
    assert record["artifacts"] == {"issues": [], "versions": [], "tags": []}
    assert record["summary"]["issues_created"] == 0


def test_complete_records_processed_count(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    tracker.complete(run_id, 7)
    record = tracker.get(run_id)
    assert record["status"] == STATUS_COMPLETED
    assert record["summary"]["issues_processed"] == 7
    assert "completed_at" in record


def test_fail_records_redacted_error(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    tracker.fail(run_id, "boom with ghp_ABCDEFGHIJKLMNOPQRSTUVWX")
    record = tracker.get(run_id)
    assert record["status"] == STATUS_FAILED
    assert record["error"] == "boom with <redacted>"
    assert "failed_at" in record


def test_runs_finalize_exactly_once(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    tracker.complete(run_id, 0)
    with pytest.raises(RunStateError):
        tracker.fail(run_id, "late")
    with pytest.raises(RunStateError):
        tracker.complete(run_id, 1)


def test_log_artifact_appends_without_dedup(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    artifact = {"number": 1, "title": "A", "repository": "acme/widgets"}
    tracker.log_artifact(run_id, "issues", artifact)
    tracker.log_artifact(run_id, "issues", artifact)
    tracker.log_artifact(run_id, "tags", {"name": "bug"})
    record = tracker.get(run_id)
    assert len(record["artifacts"]["issues"]) == 2
    assert record["summary"]["issues_created"] == 2
    assert record["summary"]["tags_created"] == 1


def test_log_artifact_rejects_unknown_kind(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    with pytest.raises(ValueError):
        tracker.log_artifact(run_id, "comments", {})


def test_log_artifact_unknown_run(tmp_path: Path):
    with pytest.raises(RunNotFoundError):
        RunTracker(tmp_path).log_artifact("run_missing", "issues", {})


def test_list_newest_first_with_filters(tmp_path: Path):
    tracker = RunTracker(tmp_path, clock=_ticking_clock(datetime(2024, 1, 1, tzinfo=timezone.utc)))
    first = tracker.start()
    second = tracker.start()
    third = tracker.start()
    tracker.complete(first, 1)
    tracker.fail(third, "x")
    assert [r["run_id"] for r in tracker.list()] == [third, second, first]
    assert [r["run_id"] for r in tracker.list(status=STATUS_COMPLETED)] == [first]
    assert len(tracker.list(limit=2)) == 2


def test_unreadable_records_are_skipped(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    (tracker.logs_dir / "broken.json").write_text("{not json", encoding="utf-8")
    assert [r["run_id"] for r in tracker.list()] == [run_id]


def test_delete_and_clean(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    a = tracker.start()
    tracker.start()
    assert tracker.delete(a) is True
    assert tracker.delete(a) is False
    assert tracker.get(a) is None
    assert tracker.clean() == 1
    assert tracker.list() == []


def test_path_traversal_run_id_rejected(tmp_path: Path):
    with pytest.raises(RunNotFoundError):
        RunTracker(tmp_path).get("../etc/passwd")


def test_saved_file_is_valid_json(tmp_path: Path):
    tracker = RunTracker(tmp_path)
    run_id = tracker.start()
    data = json.loads((tracker.logs_dir / f"{run_id}.json").read_text(encoding="utf-8"))
    assert data["run_id"] == run_id
    assert not list(tracker.logs_dir.glob("*.tmp"))


def test_generate_run_id_format():
    run_id = generate_run_id(datetime(2024, 3, 5, 14, 30, 0))
    assert run_id.startswith("run_20240305_143000_")
    assert len(run_id.rsplit("_", 1)[1]) == 8


def test_default_config_dir_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("ISSUER_CONFIG_DIR", str(tmp_path / "explicit"))
    assert default_config_dir() == tmp_path / "explicit"
    monkeypatch.delenv("ISSUER_CONFIG_DIR")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert default_config_dir() == tmp_path / "xdg" / "issuer"
    monkeypatch.delenv("XDG_CONFIG_HOME")
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    assert default_config_dir() == tmp_path / "home" / ".config" / "issuer"


def test_tracker_defaults_to_config_dir(_isolated_env: Path):
    tracker = RunTracker()
    assert tracker.logs_dir == _isolated_env / "logs"
