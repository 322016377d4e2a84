"""Environment-based authentication for backlogsync.

Resolves the tracker token from environment variables, optionally loading a
``.env`` file first so local runs behave like CI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import CredentialsError
from .logging import get_logger

TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_PAT")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    github_repository_var: str = "GITHUB_REPOSITORY"


class EnvironmentAuthManager:
    """Manages authentication from environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else ['.env', '.env.local']
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # Never override variables the caller exported explicitly
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                break

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def get_github_token(self) -> str | None:
        """Get GitHub token from environment variables."""
        for var in (self.config.github_token_var, *TOKEN_ALTERNATIVES):
            token = (os.getenv(var) or "").strip()
            if token:
                self.logger.debug(f"Found GitHub token in {var}")
                return token
        return None

    def require_github_token(self) -> str:
        token = self.get_github_token()
        if not token:
            raise CredentialsError(f"{self.config.github_token_var} is not set.")
        return token

    def get_repository(self, override: str | None = None, configured: str | None = None) -> str:
        """Resolve ``owner/repo`` from CLI override, environment, then config."""
        repo = (override or os.getenv(self.config.github_repository_var) or configured or "").strip()
        if not repo:
            raise CredentialsError(
                f"No repository configured (--repo, {self.config.github_repository_var} or github.repo)."
            )
        owner, _, name = repo.partition("/")
        if not owner or not name or "/" in name:
            raise CredentialsError(f"Repository must look like owner/repo, got {repo!r}")
        return repo


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
