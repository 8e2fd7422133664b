from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .errors import PlatformError
from .retry import RetryConfig, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "issuer-rest/0.1.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30

_ISSUE_TYPES_QUERY = """
query GetIssueTypes($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    issueTypes(first: 20) {
      nodes { id name description }
    }
  }
}
"""

_REPOSITORY_ID_QUERY = """
query GetRepository($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) { id }
}
"""

_USER_ID_QUERY = """
query GetUser($login: String!) {
  user(login: $login) { id }
}
"""

_CREATE_ISSUE_MUTATION = """
mutation CreateIssue($input: CreateIssueInput!) {
  createIssue(input: $input) {
    issue { id number title body url createdAt }
  }
}
"""


class GitHubAPIError(PlatformError):
    """Raised when the GitHub REST/GraphQL API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, status=status, cause=cause)
        self.response_text = response_text


def split_repo(repo: str) -> tuple[str, str]:
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise GitHubAPIError(f"Repository must be in 'owner/name' form, got {repo!r}")
    return owner, name


def _dig(data: Any, *keys: str) -> Any:
    cur = data
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


@dataclass
class GitHubRestClient:
    """Lightweight REST/GraphQL client for the GitHub operations issuer needs.

    The client is repository-agnostic: every call names its ``owner/name``.
    """

    token: str
    base_url: str = DEFAULT_API_URL
    graphql_url: str = DEFAULT_GRAPHQL_URL
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            return self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT,
            )

        try:
            response = run_with_retries(_run, cfg=self.retry)
        except requests.RequestException as exc:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed: {exc}", cause=exc
            ) from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    @staticmethod
    def _dicts(entries: Iterable[Any]) -> list[dict[str, Any]]:
        return [entry for entry in entries if isinstance(entry, dict)]

    # ---- Account ------------------------------------------------------
    def test_connection(self) -> dict[str, Any]:
        data = self._request("GET", "/user")
        return data if isinstance(data, dict) else {}

    # ---- Issues -------------------------------------------------------
    def create_issue(
        self,
        repo: str,
        *,
        title: str,
        body: str = "",
        labels: Iterable[str] | None = None,
        assignee: str | None = None,
        milestone: int | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        if assignee:
            payload["assignees"] = [assignee]
        if milestone is not None:
            payload["milestone"] = milestone
        data = self._request("POST", f"/repos/{repo}/issues", json_body=payload)
        return data if isinstance(data, dict) else {}

    def close_issue(self, repo: str, number: int) -> None:
        self._request(
            "PATCH", f"/repos/{repo}/issues/{number}", json_body={"state": "closed"}
        )

    # ---- Milestones ---------------------------------------------------
    def list_milestones(self, repo: str, *, state: str = "all") -> list[dict[str, Any]]:
        return self._dicts(
            self._paginate(f"/repos/{repo}/milestones", params={"state": state})
        )

    def create_milestone(
        self, repo: str, title: str, *, description: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title}
        if description:
            payload["description"] = description
        data = self._request("POST", f"/repos/{repo}/milestones", json_body=payload)
        return data if isinstance(data, dict) else {}

    def delete_milestone(self, repo: str, number: int) -> None:
        self._request("DELETE", f"/repos/{repo}/milestones/{number}")

    # ---- Labels -------------------------------------------------------
    def list_labels(self, repo: str) -> list[dict[str, Any]]:
        return self._dicts(self._paginate(f"/repos/{repo}/labels"))

    def create_label(
        self,
        repo: str,
        name: str,
        *,
        color: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": name, "color": color.lstrip("#")}
        if description:
            payload["description"] = description
        data = self._request("POST", f"/repos/{repo}/labels", json_body=payload)
        return data if isinstance(data, dict) else {}

    def delete_label(self, repo: str, name: str) -> None:
        self._request("DELETE", f"/repos/{repo}/labels/{quote(name, safe='')}")

    # ---- GraphQL ------------------------------------------------------
    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> Any:
        payload = {"query": query, "variables": variables or {}}
        data = self._request("POST", self.graphql_url, json_body=payload)
        if isinstance(data, dict) and data.get("errors"):
            errors = data["errors"]
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else first
            raise GitHubAPIError(f"GraphQL query failed: {message}")
        return data

    def get_issue_types(self, repo: str) -> list[dict[str, Any]]:
        owner, name = split_repo(repo)
        data = self.graphql(_ISSUE_TYPES_QUERY, {"owner": owner, "name": name})
        nodes = _dig(data, "data", "repository", "issueTypes", "nodes")
        return self._dicts(nodes or [])

    def resolve_issue_type(self, repo: str, type_name: str) -> str | None:
        wanted = type_name.strip().lower()
        for entry in self.get_issue_types(repo):
            if str(entry.get("name", "")).lower() == wanted:
                type_id = entry.get("id")
                return str(type_id) if type_id else None
        return None

    def get_repository_id(self, repo: str) -> str:
        owner, name = split_repo(repo)
        data = self.graphql(_REPOSITORY_ID_QUERY, {"owner": owner, "name": name})
        repo_id = _dig(data, "data", "repository", "id")
        if not repo_id:
            raise GitHubAPIError(f"Repository {repo} not found")
        return str(repo_id)

    def get_user_id(self, login: str) -> str | None:
        data = self.graphql(_USER_ID_QUERY, {"login": login})
        user_id = _dig(data, "data", "user", "id")
        return str(user_id) if user_id else None

    def resolve_label_ids(self, repo: str, names: Iterable[str]) -> list[str]:
        wanted = list(names)
        by_name = {
            str(entry.get("name")): entry.get("node_id")
            for entry in self.list_labels(repo)
        }
        return [str(by_name[n]) for n in wanted if by_name.get(n)]

    def create_issue_graphql(self, input_fields: dict[str, Any]) -> dict[str, Any]:
        data = self.graphql(_CREATE_ISSUE_MUTATION, {"input": input_fields})
        issue = _dig(data, "data", "createIssue", "issue")
        if not isinstance(issue, dict):
            raise GitHubAPIError("GraphQL createIssue returned no issue")
        # REST-shaped view so callers need not care which path created it
        return {
            "number": issue.get("number"),
            "title": issue.get("title"),
            "body": issue.get("body"),
            "html_url": issue.get("url"),
            "node_id": issue.get("id"),
            "created_at": issue.get("createdAt"),
        }


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_GRAPHQL_URL",
    "GitHubAPIError",
    "GitHubRestClient",
    "split_repo",
]
