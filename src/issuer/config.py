from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

CONFIG_DEFAULT = "issuer.config.yaml"
DEFAULT_SITE = "github"
DEFAULT_PACE_EVERY = 10
DEFAULT_PACE_SECONDS = 1.0


@dataclass
class IssuerConfig:
    source_file: Path | None
    site: str
    project: str | None
    # GitHub gateway
    github_api_url: str | None
    github_graphql_url: str | None
    token_env: str | None
    # Reconciliation / submission behavior
    auto_versions: bool
    auto_tags: bool
    pace_every: int
    pace_seconds: float
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    # Run ledger
    runs_dir: str | None
    # Environment authentication configuration
    env_auth_load_dotenv: bool
    env_auth_dotenv_path: str | None


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name, value)  # fallback to original if not found
    return value


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{key}' must be a mapping")
    return cast(dict[str, Any], value)


def config_from_mapping(raw: dict[str, Any], *, source_file: Path | None = None) -> IssuerConfig:
    gh = _section(raw, 'github')
    behavior = _section(raw, 'behavior')
    logging_config = _section(raw, 'logging')
    runs = _section(raw, 'runs')
    env_auth = _section(raw, 'environment')

    try:
        pace_every = int(behavior.get('pace_every', DEFAULT_PACE_EVERY))
        pace_seconds = float(behavior.get('pace_seconds', DEFAULT_PACE_SECONDS))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'Invalid pacing configuration: {exc}') from exc

    runs_dir = _resolve_env_var(runs.get('dir'))
    return IssuerConfig(
        source_file=source_file,
        site=str(raw.get('site', DEFAULT_SITE)).lower(),
        project=_resolve_env_var(raw.get('project')),
        github_api_url=_resolve_env_var(gh.get('api_url')),
        github_graphql_url=_resolve_env_var(gh.get('graphql_url')),
        token_env=gh.get('token_env'),
        auto_versions=bool(behavior.get('auto_versions', False)),
        auto_tags=bool(behavior.get('auto_tags', False)),
        pace_every=max(0, pace_every),
        pace_seconds=max(0.0, pace_seconds),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'WARNING')),
        runs_dir=str(runs_dir) if runs_dir else None,
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


def default_config() -> IssuerConfig:
    return config_from_mapping({})


def load_config(path: str | Path) -> IssuerConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    return config_from_mapping(cast(dict[str, Any], loaded), source_file=p)


def resolve_config(path: str | Path | None) -> IssuerConfig:
    """Load an explicit config, else ``issuer.config.yaml`` when present, else defaults."""
    if path:
        return load_config(path)
    candidate = Path(CONFIG_DEFAULT)
    if candidate.exists():
        return load_config(candidate)
    return default_config()


__all__ = [
    "CONFIG_DEFAULT",
    "IssuerConfig",
    "config_from_mapping",
    "default_config",
    "load_config",
    "resolve_config",
]
