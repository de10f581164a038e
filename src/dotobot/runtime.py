"""Runtime helpers for doto-bot CLI orchestration."""

from __future__ import annotations

import sys
import time
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from .config import CONFIG_DEFAULT, BotConfig, ConfigError, default_config, load_config
from .errors import classify_error
from .logging import get_logger

EXIT_OK = 0
EXIT_RUNTIME_FAILURE = 1
EXIT_CONFIG_FAILURE = 2


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str], BotConfig] = load_config
) -> BotConfig:
    """Load BotConfig for the given argparse namespace and apply CLI overrides.

    A missing file at the default location means "use defaults"; a missing
    file that was named explicitly is a configuration error.
    """
    path = getattr(args, "config", None)
    if path is None:
        cfg = loader(CONFIG_DEFAULT) if Path(CONFIG_DEFAULT).exists() else default_config()
    else:
        cfg = loader(path)
    repo_override = getattr(args, "repo", None)
    if repo_override:
        cfg.github_repo = repo_override
    summary_override = getattr(args, "summary_json", None)
    if summary_override:
        cfg.summary_json = summary_override
    return cfg


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler and map failures onto exit codes.

    Configuration failures exit with 2, everything else with 1. The
    traceback goes to the debug log; the operator sees the redacted message.
    """
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return EXIT_CONFIG_FAILURE
    except Exception as exc:
        info = classify_error(exc)
        logger.log_error(
            f"doto-bot {command} failed: {info.message}",
            error=info.category,
            command=command,
        )
        logger.debug(traceback.format_exc())
        print(f"[{command}] failed ({info.category}): {info.message}", file=sys.stderr)
        return EXIT_RUNTIME_FAILURE
    duration_ms = (time.monotonic() - start) * 1000
    logger.log_performance(command, duration_ms)
    return int(result) if result is not None else EXIT_OK


__all__ = [
    "EXIT_OK",
    "EXIT_RUNTIME_FAILURE",
    "EXIT_CONFIG_FAILURE",
    "prepare_config",
    "execute_command",
]
