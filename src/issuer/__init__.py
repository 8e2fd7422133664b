"""issuer - bulk-create tracker issues from a platform-agnostic YAML batch.

High-level public API:

from issuer import Issuer, load_batch, resolve_config

issuer = Issuer(resolve_config(None))
prepared = issuer.prepare(load_batch('issues.yml'))
issuer.dry_run(prepared)      # preview, no platform calls
summary = issuer.post(prepared)
print(summary['created'], summary['run_id'])

The CLI (``issuer post FILE``) delegates to this library.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import IssuerConfig, load_config, resolve_config  # noqa: E402
from .core import BatchOverrides, Issuer, PreparedBatch  # noqa: E402
from .errors import (  # noqa: E402
    IssuerError,
    PlatformError,
    ReconciliationWarning,
    UserAbort,
    ValidationError,
)
from .models import BatchDefaults, IssueRecord, compose_stub, normalize, resolve_tags  # noqa: E402
from .parser import load_batch  # noqa: E402
from .runs import RunTracker  # noqa: E402
from .sites import SiteAdapter, create_site, register_site  # noqa: E402

__all__ = [
    "BatchDefaults",
    "BatchOverrides",
    "IssueRecord",
    "Issuer",
    "IssuerConfig",
    "IssuerError",
    "PlatformError",
    "PreparedBatch",
    "ReconciliationWarning",
    "RunTracker",
    "SiteAdapter",
    "UserAbort",
    "ValidationError",
    "__version__",
    "compose_stub",
    "create_site",
    "load_batch",
    "load_config",
    "normalize",
    "register_site",
    "resolve_config",
    "resolve_tags",
]
