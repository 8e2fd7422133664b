"""Pytest configuration for issuer tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and isolates every test from the
caller's environment (tokens, target repo, config dir, cwd).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuer import logging as issuer_logging  # noqa: E402
from issuer.env_auth import DEFAULT_TOKEN_ENV_VARS  # noqa: E402
from issuer.errors import PlatformError  # noqa: E402
from issuer.models import IssueRecord  # noqa: E402
from issuer.sites import CreateResult, Resource, SiteAdapter  # noqa: E402

_SCRUBBED_ENV = (
    *DEFAULT_TOKEN_ENV_VARS,
    "ISSUER_REPO",
    "ISSUER_PROJ",
    "ISSUER_OFFLINE",
    "XDG_CONFIG_HOME",
    "NO_COLOR",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in _SCRUBBED_ENV:
        # set first so teardown also removes values a .env file loads
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    config_dir = tmp_path / "config"
    monkeypatch.setenv("ISSUER_CONFIG_DIR", str(config_dir))
    monkeypatch.chdir(tmp_path)
    # handlers bind sys.stderr at creation; rebuild per test so capture works
    monkeypatch.setattr(issuer_logging, "_GLOBAL", None)
    return config_dir


class FakeSite(SiteAdapter):
    """In-memory adapter recording every call made against it."""

    def __init__(
        self,
        versions: set[str] | None = None,
        tags: set[str] | None = None,
        *,
        fail_titles: set[str] | None = None,
        fail_tags: set[str] | None = None,
        existing_error: Exception | None = None,
    ) -> None:
        self.versions = {name: n for n, name in enumerate(sorted(versions or ()), start=1)}
        self.tags = set(tags or ())
        self.fail_titles = set(fail_titles or ())
        self.fail_tags = set(fail_tags or ())
        self.existing_error = existing_error
        self.calls: list[tuple[str, Any]] = []
        self.issues: list[dict[str, Any]] = []
        self.closed: list[int] = []

    def site_name(self) -> str:
        return "fake"

    def field_mappings(self) -> dict[str, str]:
        return {"title": "summary", "labels": "tags", "milestone": "version", "project_name": "project"}

    def translate(self, issue: IssueRecord, project: str, *, dry_run: bool = False) -> dict[str, Any]:
        params: dict[str, Any] = {"title": issue.summary, "body": issue.body}
        if issue.tags:
            params["labels"] = list(issue.tags)
        if issue.version and (dry_run or issue.version in self.versions):
            params["milestone"] = issue.version
        if issue.assignee:
            params["assignee"] = issue.assignee
        return params

    def get_existing(self, project: str) -> tuple[set[str], set[str]]:
        self.calls.append(("get_existing", project))
        if self.existing_error is not None:
            raise self.existing_error
        return set(self.versions), set(self.tags)

    def create_version(self, project: str, name: str, **opts: Any) -> CreateResult:
        self.calls.append(("create_version", name))
        number = len(self.versions) + 1
        self.versions[name] = number
        return CreateResult(
            Resource("versions", name, number=number),
            {"number": number, "title": name, "repository": project},
        )

    def create_tag(
        self,
        project: str,
        name: str,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> CreateResult:
        self.calls.append(("create_tag", name))
        if name in self.fail_tags:
            raise PlatformError(f"label {name} rejected", status=422)
        self.tags.add(name)
        return CreateResult(
            Resource("tags", name),
            {"name": name, "color": color, "description": description, "repository": project},
        )

    def create_issue(self, project: str, params: dict[str, Any]) -> CreateResult:
        self.calls.append(("create_issue", params["title"]))
        if params["title"] in self.fail_titles:
            raise PlatformError(f"rejected {params['title']}", status=422)
        number = len(self.issues) + 1
        self.issues.append(dict(params))
        return CreateResult(
            Resource("issues", params["title"], number=number, url=f"https://example.test/{number}"),
            {"number": number, "title": params["title"], "repository": project},
        )

    def close_issue(self, project: str, number: int) -> None:
        self.calls.append(("close_issue", number))
        self.closed.append(number)

    def delete_version(self, project: str, number: int) -> None:
        self.calls.append(("delete_version", number))

    def delete_tag(self, project: str, name: str) -> None:
        self.calls.append(("delete_tag", name))

    def test_connection(self) -> bool:
        return True

    def created(self, kind: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == kind]


@pytest.fixture
def fake_site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def fake_site_factory() -> type[FakeSite]:
    return FakeSite
