"""Undo the platform artifacts a run created.

Issues are closed (platforms rarely allow deletion), then milestones/versions
and labels/tags are deleted. Every artifact is attempted; one failure is
reported and the rest continue.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, TextIO

from .errors import PlatformError, RunNotFoundError, redact
from .logging import get_logger
from .runs import RunTracker
from .sites import SiteAdapter
from .ux import print_error, print_info, print_success


@dataclass
class CleanupReport:
    run_id: str
    dry_run: bool
    closed_issues: int = 0
    deleted_versions: int = 0
    deleted_tags: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "closed_issues": self.closed_issues,
            "deleted_versions": self.deleted_versions,
            "deleted_tags": self.deleted_tags,
            "errors": list(self.errors),
        }


def _project_of(artifact: dict[str, Any], run: dict[str, Any]) -> str | None:
    project = artifact.get("repository") or run.get("metadata", {}).get("project")
    return str(project) if project else None


def cleanup_run(
    run_id: str,
    adapter: SiteAdapter,
    tracker: RunTracker,
    *,
    dry_run: bool = False,
    stream: TextIO | None = None,
) -> CleanupReport:
    run = tracker.get(run_id)
    if run is None:
        raise RunNotFoundError(f"Run not found: {run_id}")
    stream = stream or sys.stdout
    logger = get_logger()
    report = CleanupReport(run_id=run_id, dry_run=dry_run)
    artifacts = run.get("artifacts") or {}

    def attempt(description: str, action: Any) -> bool:
        if dry_run:
            print_info(f"Would {description}", stream)
            return True
        try:
            action()
        except PlatformError as exc:
            message = f"Failed to {description}: {redact(str(exc))}"
            report.errors.append(message)
            print_error(message, stream)
            logger.log_error("cleanup_failed", error=str(exc), run_id=run_id)
            return False
        print_success(f"Done: {description}", stream)
        return True

    for issue in artifacts.get("issues", []):
        project, number = _project_of(issue, run), issue.get("number")
        if project and isinstance(number, int):
            if attempt(
                f"close issue #{number} in {project}",
                lambda p=project, n=number: adapter.close_issue(p, n),
            ):
                report.closed_issues += 1
    for version in artifacts.get("versions", []):
        project, number = _project_of(version, run), version.get("number")
        if project and isinstance(number, int):
            if attempt(
                f"delete version '{version.get('title', number)}' in {project}",
                lambda p=project, n=number: adapter.delete_version(p, n),
            ):
                report.deleted_versions += 1
    for tag in artifacts.get("tags", []):
        project, name = _project_of(tag, run), tag.get("name")
        if project and name:
            if attempt(
                f"delete tag '{name}' in {project}",
                lambda p=project, n=name: adapter.delete_tag(p, n),
            ):
                report.deleted_tags += 1
    logger.log_operation("cleanup_complete", **report.as_dict())
    return report


__all__ = ["CleanupReport", "cleanup_run"]
