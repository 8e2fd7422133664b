"""GitHub implementation of the site adapter contract.

Versions map to milestones and tags map to labels. Milestones and labels
created during a run are cached on the adapter instance so later lookups in
the same run see them without another round trip.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .env_auth import EnvAuthConfig, create_env_auth_manager
from .errors import ConfigError, PlatformError, ValidationError
from .github_rest import DEFAULT_API_URL, DEFAULT_GRAPHQL_URL, GitHubRestClient
from .logging import get_logger
from .models import IssueRecord
from .sites import TAG_KIND, VERSION_KIND, CreateResult, Resource, SiteAdapter

DEFAULT_LABEL_COLOR = "f29513"
DEFAULT_MILESTONE_DESCRIPTION = "Created by issuer"
TYPE_LABEL_PREFIX = "type:"

_FIELD_MAPPINGS = {
    "title": "title",
    "body": "body",
    "repo": "repo",
    "milestone": "milestone",
    "labels": "labels",
    "assignee": "assignee",
    "type": "type",
    "project_name": "repo",
}


def _milestone_resource(entry: dict[str, Any]) -> Resource:
    number = entry.get("number")
    return Resource(
        kind=VERSION_KIND,
        name=str(entry.get("title", "")),
        number=number if isinstance(number, int) else None,
        node_id=entry.get("node_id"),
        url=entry.get("html_url"),
        raw=entry,
    )


def _label_resource(entry: dict[str, Any]) -> Resource:
    return Resource(
        kind=TAG_KIND,
        name=str(entry.get("name", "")),
        node_id=entry.get("node_id"),
        url=entry.get("url"),
        raw=entry,
    )


class GitHubSite(SiteAdapter):
    def __init__(
        self,
        *,
        token: str | None = None,
        token_env: str | None = None,
        client: GitHubRestClient | None = None,
        dry_run: bool = False,
        api_url: str | None = None,
        graphql_url: str | None = None,
        load_dotenv: bool = True,
        dotenv_path: str | None = None,
    ) -> None:
        self.logger = get_logger()
        self.dry_run = dry_run
        self._milestones: dict[str, dict[str, Resource]] = {}
        self._labels: dict[str, dict[str, Resource]] = {}
        self._client = client
        if client is not None:
            return
        if token is None:
            auth = create_env_auth_manager(
                EnvAuthConfig(
                    load_dotenv=load_dotenv,
                    dotenv_path=dotenv_path,
                    token_env_var=token_env,
                )
            )
            token = auth.get_token()
            if not token and not dry_run:
                raise ConfigError(auth.missing_token_message())
        if token:
            self._client = GitHubRestClient(
                token=token,
                base_url=api_url or DEFAULT_API_URL,
                graphql_url=graphql_url or DEFAULT_GRAPHQL_URL,
            )

    # ---- contract -----------------------------------------------------
    def site_name(self) -> str:
        return "github"

    def terminology(self) -> tuple[str, str]:
        return ("milestones", "labels")

    def field_mappings(self) -> dict[str, str]:
        return dict(_FIELD_MAPPINGS)

    @property
    def client(self) -> GitHubRestClient:
        if self._client is None:
            raise PlatformError("GitHub client unavailable: no token configured (dry-run only)")
        return self._client

    @contextmanager
    def _platform_call(self, what: str) -> Iterator[None]:
        try:
            yield
        except PlatformError as exc:
            raise PlatformError(f"{what}: {exc}", status=exc.status, cause=exc) from exc

    def translate(self, issue: IssueRecord, project: str, *, dry_run: bool = False) -> dict[str, Any]:
        params: dict[str, Any] = {"title": issue.summary, "body": issue.body or ""}
        labels = [t.strip() for t in issue.tags if t and t.strip()]
        if labels:
            params["labels"] = labels
        if issue.assignee and issue.assignee.strip():
            params["assignee"] = issue.assignee.strip()
        if issue.version:
            if dry_run:
                params["milestone"] = issue.version
            else:
                milestone = self.find_milestone(project, issue.version)
                if milestone is not None and milestone.number is not None:
                    params["milestone"] = milestone.number
                else:
                    self.logger.warning(
                        f"Milestone '{issue.version}' not found for issue '{issue.summary}'; "
                        "posting without it",
                        version=issue.version,
                    )
        if issue.issue_type and issue.issue_type.strip():
            params["type"] = issue.issue_type.strip()
        return params

    def _load_milestones(self, project: str) -> dict[str, Resource]:
        with self._platform_call("Failed to fetch milestones"):
            entries = self.client.list_milestones(project)
        cache = self._milestones.setdefault(project, {})
        for entry in entries:
            res = _milestone_resource(entry)
            cache.setdefault(res.name, res)
        return cache

    def _load_labels(self, project: str) -> dict[str, Resource]:
        with self._platform_call("Failed to fetch labels"):
            entries = self.client.list_labels(project)
        cache = self._labels.setdefault(project, {})
        for entry in entries:
            res = _label_resource(entry)
            cache.setdefault(res.name, res)
        return cache

    def find_milestone(self, project: str, name: str) -> Resource | None:
        """Cache first, then the platform."""
        cached = self._milestones.get(project, {}).get(str(name))
        if cached is not None:
            return cached
        return self._load_milestones(project).get(str(name))

    def get_existing(self, project: str) -> tuple[set[str], set[str]]:
        versions = set(self._load_milestones(project))
        tags = set(self._load_labels(project))
        return versions, tags

    def create_version(self, project: str, name: str, **opts: Any) -> CreateResult:
        description = opts.get("description") or DEFAULT_MILESTONE_DESCRIPTION
        with self._platform_call(f"Failed to create milestone '{name}'"):
            entry = self.client.create_milestone(project, name, description=description)
        res = _milestone_resource(entry)
        if not res.name:
            res.name = name
        self._milestones.setdefault(project, {})[res.name] = res
        return CreateResult(
            resource=res,
            artifact={
                "number": res.number,
                "title": res.name,
                "url": res.url,
                "created_at": entry.get("created_at"),
                "repository": project,
            },
        )

    def create_tag(
        self,
        project: str,
        name: str,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> CreateResult:
        with self._platform_call(f"Failed to create label '{name}'"):
            entry = self.client.create_label(
                project, name, color=color or DEFAULT_LABEL_COLOR, description=description
            )
        res = _label_resource(entry)
        if not res.name:
            res.name = name
        self._labels.setdefault(project, {})[res.name] = res
        return CreateResult(
            resource=res,
            artifact={
                "name": res.name,
                "color": entry.get("color", color or DEFAULT_LABEL_COLOR),
                "description": entry.get("description", description),
                "url": res.url,
                "repository": project,
            },
        )

    def create_issue(self, project: str, params: dict[str, Any]) -> CreateResult:
        title = params.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Issue title is required", field="summ")
        with self._platform_call(f"Failed to create issue '{title}'"):
            if params.get("type"):
                entry = self._create_with_type(project, params)
            else:
                entry = self._create_rest(project, params)
        number = entry.get("number")
        res = Resource(
            kind="issues",
            name=str(entry.get("title") or title),
            number=number if isinstance(number, int) else None,
            node_id=entry.get("node_id"),
            url=entry.get("html_url"),
            raw=entry,
        )
        return CreateResult(
            resource=res,
            artifact={
                "number": res.number,
                "title": res.name,
                "url": res.url,
                "created_at": entry.get("created_at"),
                "repository": project,
            },
        )

    def _milestone_number(self, project: str, value: Any) -> int | None:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if value is None:
            return None
        found = self.find_milestone(project, str(value))
        return found.number if found is not None else None

    def _create_rest(self, project: str, params: dict[str, Any]) -> dict[str, Any]:
        labels = [str(t).strip() for t in params.get("labels") or [] if str(t).strip()]
        assignee = str(params.get("assignee") or "").strip() or None
        return self.client.create_issue(
            project,
            title=params["title"],
            body=params.get("body") or "",
            labels=labels,
            assignee=assignee,
            milestone=self._milestone_number(project, params.get("milestone")),
        )

    def _type_label_fallback(self, project: str, params: dict[str, Any]) -> dict[str, Any]:
        fallback = dict(params)
        type_label = f"{TYPE_LABEL_PREFIX}{fallback.pop('type')}"
        fallback["labels"] = list(fallback.get("labels") or []) + [type_label]
        self.logger.warning(f"Adding label '{type_label}' to preserve type information")
        return self._create_rest(project, fallback)

    def _create_with_type(self, project: str, params: dict[str, Any]) -> dict[str, Any]:
        type_name = str(params["type"])
        try:
            type_id = self.client.resolve_issue_type(project, type_name)
            if type_id is not None:
                return self.client.create_issue_graphql(
                    self._graphql_input(project, params, type_id)
                )
            self.logger.warning(f"Issue type '{type_name}' not found; falling back to REST API")
        except PlatformError as exc:
            self.logger.warning(f"GraphQL issue creation failed: {exc}; falling back to REST API")
        return self._type_label_fallback(project, params)

    def _graphql_input(self, project: str, params: dict[str, Any], type_id: str) -> dict[str, Any]:
        input_fields: dict[str, Any] = {
            "repositoryId": self.client.get_repository_id(project),
            "title": params["title"],
            "body": params.get("body") or "",
            "issueTypeId": type_id,
        }
        labels = params.get("labels") or []
        if labels:
            input_fields["labelIds"] = self.client.resolve_label_ids(project, labels)
        assignee = str(params.get("assignee") or "").strip()
        if assignee:
            user_id = self.client.get_user_id(assignee)
            if user_id:
                input_fields["assigneeIds"] = [user_id]
        number = self._milestone_number(project, params.get("milestone"))
        if number is not None:
            milestone = next(
                (m for m in self._milestones.get(project, {}).values() if m.number == number),
                None,
            )
            if milestone is not None and milestone.node_id:
                input_fields["milestoneId"] = milestone.node_id
        return input_fields

    def close_issue(self, project: str, number: int) -> None:
        with self._platform_call(f"Failed to close issue #{number}"):
            self.client.close_issue(project, number)

    def delete_version(self, project: str, number: int) -> None:
        with self._platform_call(f"Failed to delete milestone #{number}"):
            self.client.delete_milestone(project, number)
        cache = self._milestones.get(project, {})
        for name in [n for n, r in cache.items() if r.number == number]:
            del cache[name]

    def delete_tag(self, project: str, name: str) -> None:
        with self._platform_call(f"Failed to delete label '{name}'"):
            self.client.delete_label(project, name)
        self._labels.get(project, {}).pop(name, None)

    def test_connection(self) -> bool:
        with self._platform_call("GitHub connection test failed"):
            self.client.test_connection()
        return True


__all__ = [
    "DEFAULT_LABEL_COLOR",
    "DEFAULT_MILESTONE_DESCRIPTION",
    "GitHubSite",
]
