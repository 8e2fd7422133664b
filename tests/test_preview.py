from __future__ import annotations

from issuer.preview import LABEL_WIDTH, SEPARATOR, render_footer, render_issue, wrap_indented

LABELS = {
    "title": "title",
    "body": "body",
    "milestone": "milestone",
    "labels": "labels",
    "assignee": "assignee",
    "type": "type",
    "project_name": "repo",
}


def test_render_issue_full():
    params = {
        "title": 'Fix "login"',
        "body": "Line one\n\nLine two",
        "milestone": "1.0",
        "labels": ["bug", "ui"],
        "assignee": "alice",
        "type": "Bug",
    }
    lines = render_issue(params, LABELS, columns=80).split("\n")
    pad = " " * LABEL_WIDTH
    assert lines[1] == 'title:      "Fix \\"login\\""'
    assert lines[2] == "body:"
    assert lines[3] == pad + "Line one"
    assert lines[4] == pad
    assert lines[5] == pad + "Line two"
    assert "type:       Bug" in lines
    assert "milestone:  1.0" in lines
    assert lines.index("labels:") + 2 == lines.index(pad + "- ui")
    assert "assignee:   alice" in lines
    assert lines[-2] == SEPARATOR


def test_render_issue_minimal_omits_empty_fields():
    text = render_issue({"title": "Only", "body": ""}, LABELS)
    assert "body:" not in text
    assert "labels:" not in text
    assert "milestone" not in text


def test_platform_labels_are_used():
    text = render_issue({"title": "T", "milestone": 3}, {"title": "summary", "milestone": "fixVersion"})
    assert text.split("\n")[1].startswith("summary:")
    assert "fixVersion: 3" in text


def test_long_lines_wrap_with_indent():
    pieces = wrap_indented("word " * 40, columns=60)
    assert len(pieces) > 1
    assert all(p.startswith(" " * LABEL_WIDTH) and len(p) <= 60 for p in pieces)


def test_footer():
    assert render_footer(3, "acme/widgets", LABELS) == "Would create 3 issues for repo: acme/widgets"
    assert render_footer(0, None, LABELS) == "Would create 0 issues"
