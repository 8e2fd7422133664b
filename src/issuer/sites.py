"""Site adapter contract and registry.

A site adapter translates canonical :class:`~issuer.models.IssueRecord` fields
into one platform's parameters and exposes the small query/create surface the
reconciliation and submission steps need. Adapters never retry; the gateway
underneath does. Every platform failure surfaces as
:class:`~issuer.errors.PlatformError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .errors import ConfigError
from .models import IssueRecord

DEFAULT_SITE = "github"

VERSION_KIND = "versions"
TAG_KIND = "tags"


@dataclass
class Resource:
    """A platform-side entity (issue, version or tag) and whether it exists."""

    kind: str
    name: str
    number: int | None = None
    node_id: str | None = None
    url: str | None = None
    exists: bool = True
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class CreateResult:
    """Outcome of a create call: the resource plus its ledger artifact."""

    resource: Resource
    artifact: dict[str, Any]


class SiteAdapter(ABC):
    """Contract every target platform implements."""

    @abstractmethod
    def site_name(self) -> str: ...

    def terminology(self) -> tuple[str, str]:
        """Platform words for (versions, tags)."""
        return (VERSION_KIND, TAG_KIND)

    @abstractmethod
    def field_mappings(self) -> dict[str, str]:
        """Canonical/platform field name -> display label for previews."""

    @abstractmethod
    def translate(self, issue: IssueRecord, project: str, *, dry_run: bool = False) -> dict[str, Any]:
        """Map a resolved record to platform creation parameters."""

    @abstractmethod
    def get_existing(self, project: str) -> tuple[set[str], set[str]]:
        """Return the (version names, tag names) already on the platform."""

    @abstractmethod
    def create_version(self, project: str, name: str, **opts: Any) -> CreateResult: ...

    @abstractmethod
    def create_tag(
        self,
        project: str,
        name: str,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> CreateResult: ...

    @abstractmethod
    def create_issue(self, project: str, params: dict[str, Any]) -> CreateResult: ...

    @abstractmethod
    def close_issue(self, project: str, number: int) -> None: ...

    @abstractmethod
    def delete_version(self, project: str, number: int) -> None: ...

    @abstractmethod
    def delete_tag(self, project: str, name: str) -> None: ...

    @abstractmethod
    def test_connection(self) -> bool: ...

    def display_label(self, param: str) -> str:
        return self.field_mappings().get(param, param)


SiteFactory = Callable[..., SiteAdapter]

_REGISTRY: dict[str, SiteFactory] = {}


def register_site(key: str, factory: SiteFactory) -> None:
    _REGISTRY[key.strip().lower()] = factory


def supported_sites() -> list[str]:
    _ensure_builtin_sites()
    return sorted(_REGISTRY)


def create_site(key: str | None = None, **opts: Any) -> SiteAdapter:
    """Instantiate the adapter registered under ``key`` (default ``github``)."""
    _ensure_builtin_sites()
    name = (key or DEFAULT_SITE).strip().lower()
    factory = _REGISTRY.get(name)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY))
        raise ConfigError(f"Unsupported site '{name}'. Available sites: {available}")
    return factory(**opts)


def _ensure_builtin_sites() -> None:
    if DEFAULT_SITE in _REGISTRY:
        return
    # deferred: github_site imports this module
    from .github_site import GitHubSite

    register_site(DEFAULT_SITE, GitHubSite)


__all__ = [
    "DEFAULT_SITE",
    "TAG_KIND",
    "VERSION_KIND",
    "CreateResult",
    "Resource",
    "SiteAdapter",
    "create_site",
    "register_site",
    "supported_sites",
]
