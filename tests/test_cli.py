from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from issuer import __version__
from issuer.cli import main
from issuer.runs import RunTracker

BATCH = textwrap.dedent(
    """\
    $meta:
      proj: acme/widgets
      defaults:
        tags: ["+posted"]
    issues:
      - summ: CLI Alpha
        vrsn: "1.0"
        tags: [bug]
      - CLI Beta
      - summ: ""
    """
)


@pytest.fixture
def batch_file(tmp_path: Path) -> Path:
    path = tmp_path / "batch.yaml"
    path.write_text(BATCH, encoding="utf-8")
    return path


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_post_dry_run_previews_without_token(batch_file, capsys):
    rc = main(["post", str(batch_file), "--dry", "--user", "alice"])
    out = capsys.readouterr().out
    assert rc == 0
    assert 'title:      "CLI Alpha"' in out
    assert "milestone:  1.0" in out
    assert "assignee:   alice" in out
    assert "Would create 2 issues for repo: acme/widgets" in out
    assert "Skipping issue #3" in out
    assert RunTracker().list() == []


def test_post_dry_run_writes_summary_json(batch_file, tmp_path):
    summary = tmp_path / "summary.json"
    rc = main(["post", "--file", str(batch_file), "--dry-run", "--summary-json", str(summary)])
    assert rc == 0
    data = json.loads(summary.read_text(encoding="utf-8"))
    assert data["planned"] == 2
    assert data["skipped"] == 1


def test_post_requires_file(capsys):
    assert main(["post"]) == 2
    assert "No batch file specified" in capsys.readouterr().err


def test_post_missing_batch_file(tmp_path, capsys):
    assert main(["post", str(tmp_path / "missing.yaml"), "--dry"]) == 2
    assert "File not found" in capsys.readouterr().err


def test_live_post_without_project_fails(tmp_path, capsys):
    path = tmp_path / "noproj.yaml"
    path.write_text("- Just a summary\n", encoding="utf-8")
    assert main(["post", str(path)]) == 2
    assert "No target repo set" in capsys.readouterr().err


def test_live_post_without_token_fails(batch_file, capsys):
    assert main(["post", str(batch_file)]) == 2
    assert "token not found" in capsys.readouterr().err


def test_runs_list_empty(capsys):
    assert main(["runs", "list"]) == 0
    assert "No runs recorded." in capsys.readouterr().out


def test_runs_list_show_delete(capsys):
    tracker = RunTracker()
    done = tracker.start({"project": "acme/widgets"})
    tracker.complete(done, 0)
    pending = tracker.start()

    assert main(["runs", "list", "--status", "completed"]) == 0
    listing = capsys.readouterr().out
    assert done in listing
    assert pending not in listing

    assert main(["runs", "show", done]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "completed"

    assert main(["runs", "delete", done]) == 0
    assert tracker.get(done) is None
    assert main(["runs", "show", done]) == 1


def test_runs_clean_confirmation(monkeypatch, capsys):
    tracker = RunTracker()
    tracker.start()
    monkeypatch.setattr("builtins.input", lambda: "n")
    assert main(["runs", "clean"]) == 0
    assert len(tracker.list()) == 1
    assert main(["runs", "clean", "--yes"]) == 0
    assert tracker.list() == []
    assert "Removed 1 run record(s)" in capsys.readouterr().out


def test_runs_cleanup_dry_run(capsys):
    tracker = RunTracker()
    run_id = tracker.start({"project": "acme/widgets"})
    tracker.log_artifact(run_id, "issues", {"number": 5, "repository": "acme/widgets"})
    assert main(["runs", "cleanup", run_id, "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "Would close issue #5 in acme/widgets" in out
    assert "Closed 1 issue(s)" in out


def test_doctor_reports_missing_token(capsys):
    assert main(["doctor", "--offline"]) == 1
    out = capsys.readouterr().out
    assert "[doctor] token: missing" in out
    assert "[doctor] project: None" in out


def test_doctor_passes_offline_with_token(monkeypatch, capsys):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_dummy")
    assert main(["doctor", "--offline", "--proj", "acme/widgets"]) == 0
    out = capsys.readouterr().out
    assert "[doctor] token: present" in out
    assert "All checks passed!" in out
