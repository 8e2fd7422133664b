"""Environment-based authentication for issuer.

Tokens are read from the process environment, optionally seeded from a
``.env`` file. A custom variable name (``--tokenv``) is consulted first.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DEFAULT_TOKEN_ENV_VARS = (
    "ISSUER_API_TOKEN",
    "ISSUER_GITHUB_TOKEN",
    "GITHUB_ACCESS_TOKEN",
    "GITHUB_TOKEN",
    "GH_TOKEN",
)

_DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    token_env_var: str | None = None


class EnvironmentAuthManager:
    """Finds the platform token in environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else list(_DOTENV_LOCATIONS)
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # existing environment wins over file contents
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def candidate_vars(self) -> list[str]:
        names: list[str] = []
        if self.config.token_env_var:
            names.append(self.config.token_env_var)
        for name in DEFAULT_TOKEN_ENV_VARS:
            if name not in names:
                names.append(name)
        return names

    def get_token(self) -> str | None:
        for name in self.candidate_vars():
            raw = os.environ.get(name)
            if raw is None:
                continue
            token = raw.strip()
            if token:
                self.logger.debug(f"Found platform token in {name}")
                return token
        return None

    def missing_token_message(self) -> str:
        return f"GitHub token not found. Set {', '.join(self.candidate_vars())} environment variable."


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    return EnvironmentAuthManager(config or EnvAuthConfig())


__all__ = [
    "DEFAULT_TOKEN_ENV_VARS",
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
]
