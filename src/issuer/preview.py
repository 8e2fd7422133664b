"""Dry-run rendering of translated issues."""

from __future__ import annotations

import json
import os
import textwrap
from collections.abc import Mapping
from typing import Any

LABEL_WIDTH = 12
SEPARATOR = "------"
DEFAULT_COLUMNS = 80
_MIN_WRAP = 20


def terminal_columns() -> int:
    try:
        return max(int(os.environ.get("COLUMNS", DEFAULT_COLUMNS)), LABEL_WIDTH + _MIN_WRAP)
    except ValueError:
        return DEFAULT_COLUMNS


def wrap_indented(line: str, indent: int = LABEL_WIDTH, columns: int | None = None) -> list[str]:
    """Wrap ``line`` to the terminal width, every piece indented by ``indent``."""
    pad = " " * indent
    if not line.strip():
        return [pad]
    width = max((columns or terminal_columns()) - indent, _MIN_WRAP)
    return [pad + piece for piece in textwrap.wrap(line, width=width, break_on_hyphens=False)]


def _row(label: str, value: Any) -> str:
    return f"{label + ':':<{LABEL_WIDTH}}{value}"


def render_issue(
    params: Mapping[str, Any],
    labels: Mapping[str, str],
    *,
    columns: int | None = None,
) -> str:
    """Render one translated issue using the adapter's display labels."""
    out = [""]
    out.append(_row(labels.get("title", "title"), json.dumps(params.get("title"))))
    body = str(params.get("body") or "")
    if body.strip():
        out.append(f"{labels.get('body', 'body')}:")
        for line in body.strip().split("\n"):
            out.extend(wrap_indented(line, columns=columns))
        out.append("")
    if params.get("type"):
        out.append(_row(labels.get("type", "type"), params["type"]))
    if params.get("milestone") is not None:
        out.append(_row(labels.get("milestone", "milestone"), params["milestone"]))
    tags = params.get("labels") or []
    if tags:
        out.append(f"{labels.get('labels', 'labels')}:")
        out.extend(f"{' ' * LABEL_WIDTH}- {tag}" for tag in tags)
    if params.get("assignee"):
        out.append(_row(labels.get("assignee", "assignee"), params["assignee"]))
    out.append(SEPARATOR)
    out.append("")
    return "\n".join(out)


def render_footer(count: int, project: str | None, labels: Mapping[str, str]) -> str:
    if not project:
        return f"Would create {count} issues"
    return f"Would create {count} issues for {labels.get('project_name', 'project')}: {project}"


__all__ = ["LABEL_WIDTH", "render_footer", "render_issue", "terminal_columns", "wrap_indented"]
