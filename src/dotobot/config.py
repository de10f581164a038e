from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

CONFIG_DEFAULT = "dotobot.config.yaml"

DEFAULT_LABEL = "todo"
DEFAULT_LABEL_COLOR = "FBCA04"
DEFAULT_LABEL_DESCRIPTION = "Auto-generated TODO tracking issue"
DEFAULT_BRANCH_PREFIX = "doto-bot"


class ConfigError(RuntimeError):
    pass


@dataclass
class BotConfig:
    source_file: Path | None = None
    github_repo: str | None = None
    api_url: str = "https://api.github.com"
    server_url: str = "https://github.com"
    label_name: str = DEFAULT_LABEL
    label_color: str = DEFAULT_LABEL_COLOR
    label_description: str = DEFAULT_LABEL_DESCRIPTION
    ignore_dirs: list[str] = field(default_factory=list)
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    summary_json: str | None = None
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    def repo_url(self) -> str:
        if not self.github_repo:
            raise ConfigError("GitHub repository (owner/repo) is not configured")
        return f"{self.server_url.rstrip('/')}/{self.github_repo}"


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name, value)
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _apply_environment(cfg: BotConfig) -> BotConfig:
    """Fill unset values from the GitHub Actions runner environment."""
    if not cfg.github_repo:
        cfg.github_repo = os.environ.get("GITHUB_REPOSITORY") or None
    api_url = os.environ.get("GITHUB_API_URL")
    if api_url and cfg.api_url == BotConfig.api_url:
        cfg.api_url = api_url
    server_url = os.environ.get("GITHUB_SERVER_URL")
    if server_url and cfg.server_url == BotConfig.server_url:
        cfg.server_url = server_url
    return cfg


def default_config() -> BotConfig:
    return _apply_environment(BotConfig())


def load_config(path: str | Path) -> BotConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw_any = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    raw = cast(dict[str, Any], raw_any)
    gh = _section(raw, 'github')
    labels = _section(raw, 'labels')
    scan = _section(raw, 'scan')
    resolve = _section(raw, 'resolve')
    out = _section(raw, 'output')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    ignore_dirs = scan.get('ignore_dirs', []) or []
    if not isinstance(ignore_dirs, list):
        raise ConfigError("scan.ignore_dirs must be a list")

    cfg = BotConfig(
        source_file=p,
        github_repo=_resolve_env_var(gh.get('repo')),
        api_url=str(_resolve_env_var(gh.get('api_url')) or BotConfig.api_url),
        server_url=str(_resolve_env_var(gh.get('server_url')) or BotConfig.server_url),
        label_name=str(labels.get('name', DEFAULT_LABEL)),
        label_color=str(labels.get('color', DEFAULT_LABEL_COLOR)),
        label_description=str(labels.get('description', DEFAULT_LABEL_DESCRIPTION)),
        ignore_dirs=[str(d) for d in ignore_dirs],
        branch_prefix=str(resolve.get('branch_prefix', DEFAULT_BRANCH_PREFIX)).rstrip('/'),
        summary_json=out.get('summary_json'),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )
    return _apply_environment(cfg)


__all__ = ["BotConfig", "ConfigError", "CONFIG_DEFAULT", "default_config", "load_config"]
