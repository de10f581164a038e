"""Environment-based authentication for doto-bot.

Resolves the GitHub token from environment variables, optionally loading a
``.env`` file first (python-dotenv). Inside GitHub Actions the runner exposes
``GITHUB_TOKEN`` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GITHUB_PAT")
DOTENV_CANDIDATES = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"


class EnvironmentAuthManager:
    """Manages authentication through environment variables and .env files."""

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
        """Load the configured .env file, or the first default candidate present."""
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else DOTENV_CANDIDATES
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path))
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def get_github_token(self) -> str | None:
        """Get GitHub token from environment variables."""
        for name in (self.config.github_token_var, *TOKEN_ALTERNATIVES):
            token = (os.getenv(name) or "").strip()
            if token:
                if name != self.config.github_token_var:
                    self.logger.debug(f"Found GitHub token in {name}")
                return token
        return None


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
