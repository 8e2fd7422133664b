"""Canonical issue model: normalization, tag directives and stub composition.

Raw batch records use the compact field names of the batch format
(``summ``, ``body``, ``tags``, ``user``, ``vrsn``, ``type``, ``stub``). They are
layered over the per-batch defaults into an immutable :class:`IssueRecord`.

Resolution happens in two phases. ``normalize`` only concatenates the defaults'
tag directives ahead of the record's own (prefixes preserved); ``resolve_tags``
runs later, once the batch-level tag option is known, and produces a new
record with ``resolved_tags`` populated. A record can be resolved only once.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, NamedTuple

from .errors import ResolutionError

APPEND_PREFIX = "+"
REMOVE_PREFIX = "-"
LEGACY_BODY_FIELD = "desc"

_TRUTHY_STUB_VALUES = {"true", "yes", "1"}


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _as_directives(value: Any) -> tuple[str, ...]:
    """Coerce a ``tags`` value (list or comma-separated string) to directives."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, Sequence):
        items = value
    else:
        items = [value]
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        token = str(item).strip()
        if token:
            out.append(token)
    return tuple(out)


def is_truthy_stub(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STUB_VALUES
    if isinstance(value, int) and not isinstance(value, bool):
        return value == 1
    return False


@dataclass(frozen=True)
class BatchDefaults:
    """Per-run default values; read-only once loaded."""

    summary: str | None = None
    body: str | None = None
    assignee: str | None = None
    version: str | None = None
    issue_type: str | None = None
    tags: tuple[str, ...] = ()
    stub: Any = None
    head: str | None = None
    tail: str | None = None
    project: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> BatchDefaults:
        data = dict(raw or {})
        body = data.get("body")
        if body is None:
            body = data.get(LEGACY_BODY_FIELD)
        return cls(
            summary=_as_text(data.get("summ")),
            body=_as_text(body),
            assignee=_as_text(data.get("user")),
            version=_as_text(data.get("vrsn")),
            issue_type=_as_text(data.get("type")),
            tags=_as_directives(data.get("tags")),
            stub=data.get("stub"),
            head=_as_text(data.get("head")),
            tail=_as_text(data.get("tail")),
            project=_as_text(data.get("proj")),
        )

    def with_overrides(self, **overrides: Any) -> BatchDefaults:
        """Return a copy with non-None overrides applied (CLI > $meta.defaults)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


class TagBuckets(NamedTuple):
    append: tuple[str, ...]
    remove: tuple[str, ...]
    regular: tuple[str, ...]


def split_directives(directives: Iterable[str]) -> TagBuckets:
    """Partition tag directives by prefix, stripping the prefix."""
    append: list[str] = []
    remove: list[str] = []
    regular: list[str] = []
    for raw in directives:
        token = str(raw).strip()
        if token.startswith(APPEND_PREFIX):
            name = token[1:].strip()
            if name:
                append.append(name)
        elif token.startswith(REMOVE_PREFIX):
            name = token[1:].strip()
            if name:
                remove.append(name)
        elif token:
            regular.append(token)
    return TagBuckets(tuple(append), tuple(remove), tuple(regular))


def parse_tag_option(value: str | Iterable[str] | None) -> tuple[list[str], list[str]]:
    """Split a batch-level tag option such as ``"+urgent,docs"``.

    Returns ``(append, default)``. Append tags apply to every issue; default
    tags only to issues without regular tags of their own.
    """
    buckets = split_directives(_as_directives(value))
    # removal is issue-scope only; a batch-level "-x" carries no meaning
    return list(buckets.append), list(buckets.regular)


def _ordered_union(*groups: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for group in groups:
        for tag in group:
            if tag not in seen:
                seen.add(tag)
                out.append(tag)
    return out


@dataclass(frozen=True)
class IssueRecord:
    """Normalized, platform-agnostic representation of one work item."""

    summary: str | None
    body: str = ""
    unresolved_tags: tuple[str, ...] = ()
    assignee: str | None = None
    version: str | None = None
    issue_type: str | None = None
    stub: Any = None
    # leading entries of ``unresolved_tags`` that came from the defaults
    default_tag_count: int = 0
    resolved_tags: tuple[str, ...] | None = None
    stub_composed: bool = False
    index: int | None = field(default=None, compare=False)

    def valid(self) -> bool:
        return self.summary is not None and bool(self.summary.strip())

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.valid():
            errors.append("missing required 'summ' field")
        return errors

    @property
    def resolved(self) -> bool:
        return self.resolved_tags is not None

    @property
    def tags(self) -> tuple[str, ...]:
        """Resolved tags; raises if resolution has not run yet."""
        if self.resolved_tags is None:
            raise ResolutionError("tags have not been resolved for this record")
        return self.resolved_tags

    @property
    def own_directives(self) -> tuple[str, ...]:
        return self.unresolved_tags[self.default_tag_count:]

    @property
    def inherited_directives(self) -> tuple[str, ...]:
        return self.unresolved_tags[: self.default_tag_count]


def normalize(raw: Any, defaults: BatchDefaults | Mapping[str, Any] | None = None) -> IssueRecord:
    """Build a canonical record from a raw record layered over ``defaults``.

    A bare string is a summary-only record. For every field the record's own
    value wins and the defaults fill the gaps. Tag directives are concatenated
    (defaults first) and left unresolved.
    """
    dflt = defaults if isinstance(defaults, BatchDefaults) else BatchDefaults.from_mapping(defaults)
    if raw is None:
        data: dict[str, Any] = {}
    elif isinstance(raw, Mapping):
        data = dict(raw)
    else:
        data = {"summ": _as_text(raw)}

    def pick(key: str, fallback: str | None) -> str | None:
        value = _as_text(data.get(key))
        return value if value is not None else fallback

    body = _as_text(data.get("body"))
    if body is None:
        body = _as_text(data.get(LEGACY_BODY_FIELD))
    if body is None:
        body = dflt.body
    own_tags = _as_directives(data.get("tags"))
    return IssueRecord(
        summary=pick("summ", dflt.summary),
        body=body or "",
        unresolved_tags=dflt.tags + own_tags,
        assignee=pick("user", dflt.assignee),
        version=pick("vrsn", dflt.version),
        issue_type=pick("type", dflt.issue_type),
        stub=data["stub"] if "stub" in data else dflt.stub,
        default_tag_count=len(dflt.tags),
    )


def normalize_batch(
    records: Iterable[Any], defaults: BatchDefaults | Mapping[str, Any] | None = None
) -> list[IssueRecord]:
    dflt = defaults if isinstance(defaults, BatchDefaults) else BatchDefaults.from_mapping(defaults)
    return [
        replace(normalize(raw, dflt), index=position)
        for position, raw in enumerate(records, start=1)
    ]


def resolve_tags(
    issue: IssueRecord,
    batch_append: Iterable[str] = (),
    batch_default: Iterable[str] = (),
) -> IssueRecord:
    """Resolve the record's tag directives against batch-level context.

    final = (issue-append | defaults-append | batch-append)
            | (issue-regular if any, else batch-default | defaults-regular)
            - issue-remove

    Removal only ever applies to the record's own ``-`` directives; a ``-``
    directive inherited from the defaults is ignored.
    """
    if issue.resolved_tags is not None:
        raise ResolutionError(
            f"tags already resolved for issue {issue.summary!r}; resolution runs once"
        )
    own = split_directives(issue.own_directives)
    inherited = split_directives(issue.inherited_directives)
    append = _ordered_union(own.append, inherited.append, batch_append)
    if own.regular:
        final = _ordered_union(append, own.regular)
    else:
        final = _ordered_union(append, batch_default, inherited.regular)
    removed = set(own.remove)
    return replace(issue, resolved_tags=tuple(t for t in final if t not in removed))


def stub_enabled(issue: IssueRecord, defaults: BatchDefaults) -> bool:
    """Issue-level stub setting wins; absence falls back to the defaults."""
    value = issue.stub if issue.stub is not None else defaults.stub
    return is_truthy_stub(value)


def compose_stub(issue: IssueRecord, defaults: BatchDefaults) -> IssueRecord:
    """Compose ``head / body / tail`` into the body when stub mode applies."""
    if issue.stub_composed or not stub_enabled(issue, defaults):
        return issue
    main = issue.body if issue.body and issue.body.strip() else (defaults.body or "")
    parts = [
        part.strip()
        for part in (defaults.head or "", main, defaults.tail or "")
        if part and part.strip()
    ]
    return replace(issue, body="\n".join(parts), stub_composed=True)


__all__ = [
    "APPEND_PREFIX",
    "REMOVE_PREFIX",
    "BatchDefaults",
    "IssueRecord",
    "TagBuckets",
    "compose_stub",
    "is_truthy_stub",
    "normalize",
    "normalize_batch",
    "parse_tag_option",
    "resolve_tags",
    "split_directives",
    "stub_enabled",
]
