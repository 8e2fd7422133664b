"""Batch processor: prepare a batch, then preview it or post it.

``prepare`` is pure (normalize, resolve tags, compose stubs, validate).
``dry_run`` renders the translated issues and never mutates the platform.
``post`` opens a run in the ledger, reconciles versions and tags, submits the
valid issues one at a time in input order and finalizes the run.
"""

from __future__ import annotations

import os
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TextIO

from .config import IssuerConfig, default_config
from .errors import (
    ConfigError,
    IssuerError,
    PlatformError,
    ValidationError,
    classify_error,
    redact,
)
from .logging import get_logger
from .models import BatchDefaults, IssueRecord, compose_stub, normalize_batch, parse_tag_option, resolve_tags
from .parser import BatchDocument
from .preview import render_footer, render_issue
from .reconcile import Prompter, Reconciliation, ResourceSet, drop_unavailable, reconcile
from .runs import RunTracker
from .sites import SiteAdapter, create_site
from .ux import print_error, print_info, print_success, print_summary_box, print_warning

PROJECT_ENV_VARS = ("ISSUER_REPO", "ISSUER_PROJ")
MISSING_PROJECT_MESSAGE = "No target repo set. Use --proj, $meta.proj, or ENV[ISSUER_REPO]."


@dataclass
class BatchOverrides:
    """Command-line level values; they win over ``$meta`` and config."""

    project: str | None = None
    version: str | None = None
    assignee: str | None = None
    stub: bool | None = None
    tags: str | None = None
    auto_versions: bool | None = None
    auto_tags: bool | None = None


@dataclass
class PreparedBatch:
    project: str | None
    defaults: BatchDefaults
    issues: list[IssueRecord]
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> list[IssueRecord]:
        return [i for i in self.issues if i.valid()]

    @property
    def invalid(self) -> list[IssueRecord]:
        return [i for i in self.issues if not i.valid()]


def resolve_project(
    cli_project: str | None,
    document: BatchDocument | None = None,
    config: IssuerConfig | None = None,
) -> str | None:
    """``--proj`` > ``$meta.proj`` > config ``project`` > ISSUER_REPO > ISSUER_PROJ."""
    if cli_project:
        return cli_project
    if document is not None and document.project:
        return document.project
    if config is not None and config.project:
        return config.project
    for name in PROJECT_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


class Issuer:
    def __init__(
        self,
        config: IssuerConfig | None = None,
        site: SiteAdapter | None = None,
        tracker: RunTracker | None = None,
        prompter: Prompter | None = None,
        *,
        out: TextIO | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = config or default_config()
        self._site = site
        self.tracker = tracker
        self.prompter = prompter
        self.out = out or sys.stdout
        self._sleep = sleep
        self._logger = get_logger()

    # ---- collaborators ------------------------------------------------
    def site(self, *, dry_run: bool = False, token_env: str | None = None) -> SiteAdapter:
        if self._site is None:
            self._site = create_site(
                self.cfg.site,
                token_env=token_env or self.cfg.token_env,
                dry_run=dry_run,
                api_url=self.cfg.github_api_url,
                graphql_url=self.cfg.github_graphql_url,
                load_dotenv=self.cfg.env_auth_load_dotenv,
                dotenv_path=self.cfg.env_auth_dotenv_path,
            )
        return self._site

    def _tracker(self) -> RunTracker:
        if self.tracker is None:
            self.tracker = RunTracker(self.cfg.runs_dir)
        return self.tracker

    # ---- preparation --------------------------------------------------
    def prepare(self, document: BatchDocument, overrides: BatchOverrides | None = None) -> PreparedBatch:
        ov = overrides or BatchOverrides()
        project = resolve_project(ov.project, document, self.cfg)
        defaults = document.defaults().with_overrides(
            version=ov.version, assignee=ov.assignee, stub=ov.stub, project=project
        )
        batch_append, batch_default = parse_tag_option(ov.tags)
        issues: list[IssueRecord] = []
        errors: list[ValidationError] = []
        for record in normalize_batch(document.records, defaults):
            resolved = compose_stub(resolve_tags(record, batch_append, batch_default), defaults)
            issues.append(resolved)
            for problem in resolved.validation_errors():
                errors.append(ValidationError(
                    f"Skipping issue #{resolved.index}: {problem}", index=resolved.index, field="summ"
                ))
        for err in errors:
            print_warning(str(err), self.out)
            self._logger.warning(str(err), index=err.index)
        self._logger.log_operation(
            "prepare_complete", issues=len(issues), invalid=len(errors), project=project
        )
        return PreparedBatch(project=project, defaults=defaults, issues=issues, errors=errors)

    def _summary(self, prepared: PreparedBatch, *, dry_run: bool) -> dict[str, Any]:
        return {
            "project": prepared.project,
            "dry_run": dry_run,
            "planned": len(prepared.valid),
            "skipped": len(prepared.invalid),
            "created": 0,
            "failed": 0,
            "versions": 0,
            "tags": 0,
            "run_id": None,
            "failures": [],
            "warnings": [],
        }

    # ---- dry run ------------------------------------------------------
    def dry_run(self, prepared: PreparedBatch) -> dict[str, Any]:
        site = self.site(dry_run=True)
        labels = site.field_mappings()
        project = prepared.project or ""
        for issue in prepared.valid:
            params = site.translate(issue, project, dry_run=True)
            self._logger.log_issue_action("preview", issue.summary or "", dry_run=True)
            print(render_issue(params, labels), file=self.out)
        print(render_footer(len(prepared.valid), prepared.project, labels), file=self.out)
        print(
            f"\nDry run complete (use without --dry to actually post). "
            f"Would process {len(prepared.valid)} issues, skip {len(prepared.invalid)}",
            file=self.out,
        )
        return self._summary(prepared, dry_run=True)

    # ---- live run -----------------------------------------------------
    def _start_run(self, prepared: PreparedBatch, site: SiteAdapter) -> str | None:
        try:
            return self._tracker().start({
                "issues_planned": len(prepared.valid),
                "project": prepared.project,
                "site": site.site_name(),
            })
        except (OSError, IssuerError) as exc:
            self._logger.log_error("Could not start run record", error=str(exc))
            return None

    def _record(self, run_id: str | None, kind: str, artifact: dict[str, Any]) -> None:
        if run_id is None:
            return
        try:
            self._tracker().log_artifact(run_id, kind, artifact)
        except (OSError, ValueError, IssuerError) as exc:
            self._logger.log_error("Could not record artifact", error=str(exc), run_id=run_id, kind=kind)

    def _finish(self, run_id: str | None, processed: int) -> None:
        if run_id is None:
            return
        try:
            self._tracker().complete(run_id, processed)
        except (OSError, IssuerError) as exc:
            self._logger.log_error("Could not complete run record", error=str(exc), run_id=run_id)

    def _fail(self, run_id: str | None, message: str) -> None:
        if run_id is None:
            return
        try:
            self._tracker().fail(run_id, message)
        except (OSError, IssuerError) as exc:
            self._logger.log_error("Could not mark run failed", error=str(exc), run_id=run_id)

    def post(
        self,
        prepared: PreparedBatch,
        *,
        auto_versions: bool | None = None,
        auto_tags: bool | None = None,
        token_env: str | None = None,
    ) -> dict[str, Any]:
        if not prepared.project:
            raise ConfigError(MISSING_PROJECT_MESSAGE)
        project = prepared.project
        site = self.site(token_env=token_env)
        summary = self._summary(prepared, dry_run=False)
        run_id = self._start_run(prepared, site)
        summary["run_id"] = run_id
        if run_id:
            print_info(f"Started run {run_id} - tracking {len(prepared.valid)} issues", self.out)
        try:
            with self._logger.timed_operation("post", project=project, run_id=run_id):
                unavailable = ResourceSet()
                if prepared.valid:
                    ctx = reconcile(
                        site,
                        project,
                        prepared.valid,
                        auto_versions=self.cfg.auto_versions if auto_versions is None else auto_versions,
                        auto_tags=self.cfg.auto_tags if auto_tags is None else auto_tags,
                        prompter=self.prompter,
                        tracker=self._tracker() if run_id else None,
                        run_id=run_id,
                        stream=self.out,
                    )
                    self._apply_reconciliation(summary, ctx)
                    unavailable = ctx.unavailable()
                self._submit(site, project, prepared.valid, run_id, summary, unavailable)
        except (Exception, KeyboardInterrupt) as exc:
            info = classify_error(exc)
            self._logger.log_error(
                "post_failed",
                category=info.category,
                original_type=info.original_type,
                error=info.message,
                run_id=run_id,
            )
            self._fail(run_id, str(exc))
            if run_id:
                print_error(f"Run {run_id} failed: {redact(str(exc))}", self.out)
            raise
        self._finish(run_id, summary["created"])
        if run_id:
            print_success(
                f"Run {run_id} completed - {summary['created']} issues created", self.out
            )
        self._print_summary(summary)
        return summary

    def _apply_reconciliation(self, summary: dict[str, Any], ctx: Reconciliation) -> None:
        summary["versions"] = len(ctx.created.versions)
        summary["tags"] = len(ctx.created.tags)
        summary["warnings"] = [str(w) for w in ctx.warnings]

    def _submit(
        self,
        site: SiteAdapter,
        project: str,
        issues: list[IssueRecord],
        run_id: str | None,
        summary: dict[str, Any],
        unavailable: ResourceSet | None = None,
    ) -> None:
        cfg = self.cfg
        for issue in issues:
            title = issue.summary or ""
            if unavailable is not None:
                issue = drop_unavailable(issue, unavailable)
            try:
                params = site.translate(issue, project)
                result = site.create_issue(project, params)
            except PlatformError as exc:
                message = redact(str(exc))
                summary["failed"] += 1
                summary["failures"].append({"index": issue.index, "summary": title, "error": message})
                print_error(f"Failed to create issue '{title}': {message}", self.out)
                self._logger.log_error("issue_create_failed", error=message, summary=title)
                continue
            summary["created"] += 1
            number = result.resource.number
            print_success(f"Created issue #{number}: {title}", self.out)
            if result.resource.url:
                print(f"   URL: {result.resource.url}", file=self.out)
            self._logger.log_issue_action("created", title, issue_number=number)
            self._record(run_id, "issues", result.artifact)
            if cfg.pace_every and summary["created"] % cfg.pace_every == 0:
                self._sleep(cfg.pace_seconds)

    def _print_summary(self, summary: dict[str, Any]) -> None:
        items: list[tuple[str, str | int]] = [
            ("Issues created", f"{summary['created']}/{summary['planned']}"),
            ("Issues failed", summary["failed"]),
            ("Issues skipped", summary["skipped"]),
            ("Versions created", summary["versions"]),
            ("Tags created", summary["tags"]),
        ]
        if summary.get("run_id"):
            items.append(("Run", summary["run_id"]))
        print_summary_box("Summary", items, self.out)

    # ---- convenience --------------------------------------------------
    def process(
        self,
        document: BatchDocument,
        overrides: BatchOverrides | None = None,
        *,
        dry_run: bool = False,
        token_env: str | None = None,
    ) -> dict[str, Any]:
        ov = overrides or BatchOverrides()
        prepared = self.prepare(document, ov)
        if dry_run:
            return self.dry_run(prepared)
        return self.post(
            prepared, auto_versions=ov.auto_versions, auto_tags=ov.auto_tags, token_env=token_env
        )


__all__ = [
    "MISSING_PROJECT_MESSAGE",
    "BatchOverrides",
    "Issuer",
    "PreparedBatch",
    "resolve_project",
]
