from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml
from jsonschema import Draft7Validator

from .errors import ParseError
from .models import BatchDefaults

META_KEY = "$meta"
ISSUES_KEY = "issues"

_TEXT = {"type": ["string", "number", "null"]}
_FIELDS: dict[str, Any] = {
    "summ": _TEXT,
    "body": _TEXT,
    "desc": _TEXT,
    "user": _TEXT,
    "vrsn": _TEXT,
    "type": _TEXT,
    "tags": {
        "anyOf": [
            {"type": "array", "items": {"type": ["string", "number", "null"]}},
            {"type": ["string", "null"]},
        ]
    },
    "stub": {"type": ["boolean", "string", "integer", "null"]},
}
BATCH_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "meta": {
            "type": "object",
            "properties": {
                "proj": {"type": ["string", "null"]},
                "defaults": {
                    "type": ["object", "null"],
                    "properties": {**_FIELDS, "head": _TEXT, "tail": _TEXT},
                },
            },
        },
        "records": {
            "type": "array",
            "items": {"type": ["string", "object", "null"], "properties": _FIELDS},
        },
    },
}
_BATCH_VALIDATOR = Draft7Validator(BATCH_SCHEMA)


@dataclass
class BatchDocument:
    """A loaded batch: run-level ``$meta`` plus the ordered raw records."""

    records: list[Any]
    meta: dict[str, Any] = field(default_factory=dict)
    source: Path | None = None

    @property
    def project(self) -> str | None:
        proj = self.meta.get("proj")
        return str(proj) if proj else None

    @property
    def raw_defaults(self) -> dict[str, Any]:
        defaults = self.meta.get("defaults")
        return dict(defaults) if isinstance(defaults, Mapping) else {}

    def defaults(self) -> BatchDefaults:
        loaded = BatchDefaults.from_mapping(self.raw_defaults)
        if self.project and not loaded.project:
            loaded = loaded.with_overrides(project=self.project)
        return loaded


def _check_records(records: list[Any]) -> None:
    for position, item in enumerate(records, start=1):
        if item is None or isinstance(item, (str, Mapping)):
            continue
        raise ParseError(
            f"Issue #{position} must be a string or a mapping, got {type(item).__name__}"
        )


def _location(path: list[Any]) -> str:
    head, *rest = path or ["<root>"]
    if head == "records" and rest:
        position, *rest = rest
        label = f"Issue #{int(position) + 1}"
    else:
        label = META_KEY if head == "meta" else str(head)
    return ".".join([label, *(str(part) for part in rest)])


def _validate_shape(meta: dict[str, Any], records: list[Any]) -> None:
    errors = sorted(
        _BATCH_VALIDATOR.iter_errors({"meta": meta, "records": records}),
        key=lambda err: list(err.path),
    )
    if errors:
        messages = [f"{_location(list(err.path))}: {err.message}" for err in errors]
        raise ParseError("Invalid batch document:\n  " + "\n  ".join(messages))


def parse_batch(data: Any, *, source: Path | None = None) -> BatchDocument:
    """Split a decoded document into meta and records.

    The root may be a bare list of records or a mapping holding ``$meta`` and
    ``issues``.
    """
    if data is None:
        where = f": {source}" if source else ""
        raise ParseError(f"Batch document appears to be empty{where}")
    meta: dict[str, Any] = {}
    if isinstance(data, Mapping):
        meta_any = data.get(META_KEY)
        if meta_any is not None and not isinstance(meta_any, Mapping):
            raise ParseError(f"'{META_KEY}' must be a mapping")
        meta = dict(cast(Mapping[str, Any], meta_any or {}))
        records_any = data.get(ISSUES_KEY)
    else:
        records_any = data
    if not isinstance(records_any, list):
        raise ParseError(f'No issues array found (root or under "{ISSUES_KEY}")')
    records = list(records_any)
    _check_records(records)
    _validate_shape(meta, records)
    return BatchDocument(records=records, meta=meta, source=source)


def parse_batch_text(text: str, *, source: Path | None = None) -> BatchDocument:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        where = f" {source}" if source else ""
        raise ParseError(f"Could not parse YAML{where}: {exc}") from exc
    return parse_batch(data, source=source)


def load_batch(path: str | Path) -> BatchDocument:
    p = Path(path)
    if not p.exists():
        raise ParseError(f"File not found: {p}")
    return parse_batch_text(p.read_text(encoding="utf-8"), source=p)


__all__ = ["BatchDocument", "load_batch", "parse_batch", "parse_batch_text"]
