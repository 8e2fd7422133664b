"""Pre-submission reconciliation of versions and tags.

Before any issue is created, the versions and tags referenced across the batch
are collected, diffed against what the platform already has, and the missing
ones are created either automatically or after asking the operator.

The flow is recorded on a :class:`Reconciliation` context::

    COLLECTING -> DIFFING -> NO_ACTION -> DONE
                          -> RESOLVING -> DONE

Reconciliation is best-effort. Platform failures are downgraded to
:class:`~issuer.errors.ReconciliationWarning` entries and submission still
proceeds. Only :class:`~issuer.errors.UserAbort` stops the run.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol, TextIO

from .errors import IssuerError, PlatformError, ReconciliationWarning, UserAbort
from .logging import get_logger
from .models import IssueRecord
from .sites import TAG_KIND, VERSION_KIND, CreateResult, SiteAdapter
from .ux import print_info, print_success, print_warning, prompt

ACCEPT = "accept"
DECLINE = "decline"
CUSTOM = "custom"
ABORT = "abort"

_INTERACTIVE_ANSWERS = {
    "": ACCEPT,
    "y": ACCEPT,
    "yes": ACCEPT,
    "n": DECLINE,
    "no": DECLINE,
    "c": CUSTOM,
    "custom": CUSTOM,
    "q": ABORT,
    "quit": ABORT,
}


class ReconcileState(str, Enum):
    COLLECTING = "collecting"
    DIFFING = "diffing"
    NO_ACTION = "no_action"
    RESOLVING = "resolving"
    DONE = "done"


@dataclass
class ResourceSet:
    """Ordered, de-duplicated version and tag names."""

    versions: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def add_version(self, name: str) -> None:
        if name and name not in self.versions:
            self.versions.append(name)

    def add_tag(self, name: str) -> None:
        if name and name not in self.tags:
            self.tags.append(name)

    def is_empty(self) -> bool:
        return not self.versions and not self.tags

    def of_kind(self, kind: str) -> list[str]:
        if kind == VERSION_KIND:
            return self.versions
        if kind == TAG_KIND:
            return self.tags
        raise ValueError(f"unknown resource kind: {kind}")


@dataclass
class PromptResponse:
    action: str
    color: str | None = None
    description: str | None = None


class Prompter(Protocol):
    def ask(self, kind: str, term: str, name: str, project: str) -> PromptResponse: ...


class ArtifactSink(Protocol):
    def log_artifact(self, run_id: str, kind: str, artifact: dict[str, Any]) -> None: ...


class AutoPrompter:
    """Accepts every missing resource with default attributes."""

    def ask(self, kind: str, term: str, name: str, project: str) -> PromptResponse:
        return PromptResponse(ACCEPT)


class ScriptedPrompter:
    """Replays canned answers in order; declines once exhausted."""

    def __init__(self, responses: Iterable[str | PromptResponse]):
        self._responses = [
            r if isinstance(r, PromptResponse) else PromptResponse(_normalize_answer(r))
            for r in responses
        ]
        self.asked: list[tuple[str, str]] = []

    def ask(self, kind: str, term: str, name: str, project: str) -> PromptResponse:
        self.asked.append((kind, name))
        if not self._responses:
            return PromptResponse(DECLINE)
        return self._responses.pop(0)


class InteractivePrompter:
    """Blocking stdin prompts: ``[Y/n/q]`` for versions, ``[Y/n/c/q]`` for tags."""

    def __init__(
        self,
        stream: TextIO | None = None,
        reader: Callable[[str, TextIO | None], str] = prompt,
    ):
        self.stream = stream or sys.stdout
        self._read = reader

    def ask(self, kind: str, term: str, name: str, project: str) -> PromptResponse:
        noun = _singular(term)
        if kind == TAG_KIND:
            question = f"Create {noun} '{name}' with default color? [Y/n/c/q]: "
        else:
            question = f"Create {noun} '{name}'? [Y/n/q]: "
        action = _normalize_answer(self._read(question, self.stream))
        if action == CUSTOM and kind != TAG_KIND:
            action = DECLINE
        if action != CUSTOM:
            return PromptResponse(action)
        color = self._read("Enter hex color (without #, e.g. 'f29513'): ", self.stream).strip()
        description = self._read("Enter description (optional): ", self.stream).strip()
        return PromptResponse(CUSTOM, color=color or None, description=description or None)


def _normalize_answer(answer: str) -> str:
    value = answer.strip().lower()
    if value in (ACCEPT, DECLINE, CUSTOM, ABORT):
        return value
    # anything unrecognised declines
    return _INTERACTIVE_ANSWERS.get(value, DECLINE)


def _singular(term: str) -> str:
    return term[:-1] if term.endswith("s") else term


@dataclass
class Reconciliation:
    """State and outcome of one reconciliation pass."""

    project: str
    state: ReconcileState = ReconcileState.COLLECTING
    required: ResourceSet = field(default_factory=ResourceSet)
    missing: ResourceSet = field(default_factory=ResourceSet)
    created: ResourceSet = field(default_factory=ResourceSet)
    declined: ResourceSet = field(default_factory=ResourceSet)
    failed: ResourceSet = field(default_factory=ResourceSet)
    warnings: list[ReconciliationWarning] = field(default_factory=list)

    def warn(self, message: str, *, kind: str | None = None, name: str | None = None) -> None:
        self.warnings.append(ReconciliationWarning(message, kind=kind, name=name))

    def unavailable(self) -> ResourceSet:
        """Missing resources that were not created: declined, failed or never reached."""
        return ResourceSet(
            versions=[v for v in self.missing.versions if v not in self.created.versions],
            tags=[t for t in self.missing.tags if t not in self.created.tags],
        )


def drop_unavailable(issue: IssueRecord, unavailable: ResourceSet) -> IssueRecord:
    """Return ``issue`` without the version and tags that were not created."""
    version = issue.version
    if version and version.strip() in unavailable.versions:
        version = None
    tags = tuple(t for t in issue.tags if t.strip() not in unavailable.tags)
    if version == issue.version and tags == issue.tags:
        return issue
    return replace(issue, version=version, resolved_tags=tags)


def collect_required(issues: Sequence[IssueRecord]) -> ResourceSet:
    """Distinct non-empty version names and resolved tags of the valid records."""
    required = ResourceSet()
    for issue in issues:
        if not issue.valid():
            continue
        if issue.version and issue.version.strip():
            required.add_version(issue.version.strip())
        for tag in issue.tags:
            required.add_tag(tag.strip())
    return required


def diff(adapter: SiteAdapter, project: str, required: ResourceSet) -> ResourceSet:
    existing_versions, existing_tags = adapter.get_existing(project)
    return ResourceSet(
        versions=[v for v in required.versions if v not in existing_versions],
        tags=[t for t in required.tags if t not in existing_tags],
    )


def _log_created(
    tracker: ArtifactSink | None, run_id: str | None, kind: str, result: CreateResult
) -> None:
    if tracker is None or run_id is None:
        return
    try:
        tracker.log_artifact(run_id, kind, result.artifact)
    except (OSError, ValueError, IssuerError) as exc:
        get_logger().log_error("Failed to record created resource", error=str(exc), kind=kind)


def _create(
    adapter: SiteAdapter, project: str, kind: str, name: str, response: PromptResponse
) -> CreateResult:
    if kind == VERSION_KIND:
        return adapter.create_version(project, name)
    return adapter.create_tag(
        project, name, color=response.color, description=response.description
    )


def resolve(
    adapter: SiteAdapter,
    project: str,
    missing: Sequence[str],
    kind: str,
    automation: bool,
    run_id: str | None = None,
    *,
    prompter: Prompter | None = None,
    tracker: ArtifactSink | None = None,
    context: Reconciliation | None = None,
    stream: TextIO | None = None,
) -> list[CreateResult]:
    """Create the ``missing`` resources of one ``kind``.

    With ``automation`` every missing resource is created. Otherwise the
    prompter decides per resource; ``abort`` raises :class:`UserAbort`.
    A :class:`PlatformError` from creation is recorded on ``context`` as a
    warning and the next resource is tried; without a context it propagates.
    """
    if kind not in (VERSION_KIND, TAG_KIND):
        raise ValueError(f"unknown resource kind: {kind}")
    version_term, tag_term = adapter.terminology()
    term = version_term if kind == VERSION_KIND else tag_term
    noun = _singular(term)
    prompter = prompter or InteractivePrompter(stream)
    logger = get_logger()
    results: list[CreateResult] = []
    for name in missing:
        print_info(f"{noun.capitalize()} '{name}' does not exist in project '{project}'", stream)
        response = PromptResponse(ACCEPT) if automation else prompter.ask(kind, term, name, project)
        if response.action == ABORT:
            raise UserAbort(f"Aborted: please resolve missing {term} in '{project}' and try again")
        if response.action not in (ACCEPT, CUSTOM):
            print_warning(
                f"Skipping {noun} '{name}'. Issues referencing it are posted without it.", stream
            )
            if context is not None:
                context.declined.of_kind(kind).append(name)
            continue
        try:
            result = _create(adapter, project, kind, name, response)
        except PlatformError as exc:
            if context is None:
                raise
            context.failed.of_kind(kind).append(name)
            context.warn(f"Could not create {noun} '{name}': {exc}", kind=kind, name=name)
            logger.log_error(f"create_{kind}_failed", error=str(exc), resource=name, project=project)
            print_warning(f"Could not create {noun} '{name}': {exc}", stream)
            continue
        logger.log_operation(f"create_{kind}", resource=name, project=project, automated=automation)
        print_success(f"{noun.capitalize()} '{name}' created", stream)
        _log_created(tracker, run_id, kind, result)
        if context is not None:
            context.created.of_kind(kind).append(name)
        results.append(result)
    return results


def reconcile(
    adapter: SiteAdapter,
    project: str,
    issues: Sequence[IssueRecord],
    *,
    auto_versions: bool = False,
    auto_tags: bool = False,
    prompter: Prompter | None = None,
    tracker: ArtifactSink | None = None,
    run_id: str | None = None,
    stream: TextIO | None = None,
) -> Reconciliation:
    """Collect, diff and resolve the batch's versions and tags."""
    ctx = Reconciliation(project=project)
    ctx.required = collect_required(issues)
    if ctx.required.is_empty():
        ctx.state = ReconcileState.DONE
        return ctx
    version_term, tag_term = adapter.terminology()
    logger = get_logger()
    try:
        ctx.state = ReconcileState.DIFFING
        print_info(
            f"Checking {adapter.site_name()} project for existing {version_term} and {tag_term}...",
            stream,
        )
        ctx.missing = diff(adapter, project, ctx.required)
        if ctx.missing.is_empty():
            ctx.state = ReconcileState.NO_ACTION
            print_success(f"All {version_term} and {tag_term} already exist in project", stream)
            ctx.state = ReconcileState.DONE
            return ctx
        ctx.state = ReconcileState.RESOLVING
        for kind, automation in ((VERSION_KIND, auto_versions), (TAG_KIND, auto_tags)):
            missing = ctx.missing.of_kind(kind)
            if missing:
                resolve(
                    adapter,
                    project,
                    missing,
                    kind,
                    automation,
                    run_id,
                    prompter=prompter,
                    tracker=tracker,
                    context=ctx,
                    stream=stream,
                )
    except UserAbort:
        raise
    except Exception as exc:  # reconciliation never blocks submission
        ctx.warn(f"Reconciliation incomplete: {exc}")
        logger.log_error("Error during reconciliation", error=str(exc), project=project)
        print_warning(
            f"Error during validation: {exc}. Proceeding anyway; some issues may fail to create.",
            stream,
        )
    for kind, term in ((VERSION_KIND, version_term), (TAG_KIND, tag_term)):
        for name in ctx.declined.of_kind(kind):
            ctx.warn(f"{_singular(term).capitalize()} '{name}' was not created", kind=kind, name=name)
    ctx.state = ReconcileState.DONE
    return ctx


__all__ = [
    "ABORT",
    "ACCEPT",
    "CUSTOM",
    "DECLINE",
    "AutoPrompter",
    "InteractivePrompter",
    "PromptResponse",
    "Prompter",
    "ReconcileState",
    "Reconciliation",
    "ResourceSet",
    "ScriptedPrompter",
    "collect_required",
    "diff",
    "drop_unavailable",
    "reconcile",
    "resolve",
]
