"""doto-bot CLI.

Subcommands:
  scan     -> scan the working tree and sync managed TODO issues
  resolve  -> open a pull request removing the TODO lines of a closed issue
  list     -> print grouped TODOs of a tree (offline, no GitHub access)
  action   -> GitHub Actions entry point (mode from INPUT_MODE)
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from dotobot.config import BotConfig, ConfigError
from dotobot.env_auth import EnvAuthConfig, create_env_auth_manager
from dotobot.grouping import group_annotations
from dotobot.logging import configure_logging
from dotobot.orchestrator import build_client, run_resolve, run_scan
from dotobot.runtime import EXIT_CONFIG_FAILURE, execute_command, prepare_config
from dotobot.scanner import scan

REPO_HELP = "Override target repository (owner/repo, env: GITHUB_REPOSITORY)"
MODES = ("scan", "resolve")

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _default_root() -> str:
    return os.environ.get("GITHUB_WORKSPACE") or os.getcwd()


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands."""
    p = _FormatterArgumentParser(
        prog="dotobot", description="Keep TODO annotations in sync with GitHub issues"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors (env: DOTOBOT_QUIET=1)",
    )
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("scan", help="Scan the tree and create/update/close TODO issues")
    ps.add_argument("--config", help="Path to dotobot.config.yaml")
    ps.add_argument("--repo", help=REPO_HELP)
    ps.add_argument("--root", default=None, help="Tree to scan (env: GITHUB_WORKSPACE, else cwd)")
    ps.add_argument(
        "--ref",
        default=None,
        help="Ref being scanned; non-default branches are skipped (env: GITHUB_REF)",
    )
    ps.add_argument("--dry-run", action="store_true", help="Plan only, no issue mutations")
    ps.add_argument("--summary-json", help="Write the sync summary to this path")

    pr = sub.add_parser("resolve", help="Open a PR removing the TODO lines of an issue")
    pr.add_argument("--config", help="Path to dotobot.config.yaml")
    pr.add_argument("--repo", help=REPO_HELP)
    pr.add_argument("--issue-number", type=int, default=None)

    pl = sub.add_parser("list", help="List grouped TODOs without contacting GitHub")
    pl.add_argument("--config", help="Path to dotobot.config.yaml")
    pl.add_argument("--root", default=None)
    pl.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    pa = sub.add_parser("action", help="GitHub Actions entry point (INPUT_MODE=scan|resolve)")
    pa.add_argument("--config", help="Path to dotobot.config.yaml")
    return p


def _resolve_token(cfg: BotConfig) -> str | None:
    manager = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
        )
    )
    return manager.get_github_token()


def _cmd_scan(cfg: BotConfig, args: argparse.Namespace) -> int:
    client = build_client(cfg, _resolve_token(cfg))
    summary = run_scan(
        cfg,
        client,
        root=args.root or _default_root(),
        ref=args.ref if args.ref is not None else os.environ.get("GITHUB_REF"),
        dry_run=bool(getattr(args, "dry_run", False)),
    )
    totals = summary.get("totals")
    if isinstance(totals, dict) and not args.quiet:
        print(
            "[scan] "
            + " ".join(f"{k}={v}" for k, v in totals.items())
            + (" (dry-run)" if summary.get("dry_run") else "")
        )
    return 0


def _cmd_resolve(cfg: BotConfig, args: argparse.Namespace) -> int:
    if not args.issue_number:
        raise ConfigError("issue-number input is required for resolve mode.")
    client = build_client(cfg, _resolve_token(cfg))
    result = run_resolve(cfg, client, args.issue_number)
    if not args.quiet:
        print(f"[resolve] #{args.issue_number}: {result['status']}")
    return 0


def _cmd_list(cfg: BotConfig, args: argparse.Namespace) -> int:
    annotations = scan(Path(args.root or _default_root()), cfg.ignore_dirs)
    groups = group_annotations(annotations)
    if args.json:
        payload = [
            {
                "key": key,
                "description": group.description,
                "locations": [{"file": loc.file, "line": loc.line} for loc in group.locations],
            }
            for key, group in groups.items()
        ]
        print(json.dumps(payload, indent=2))
        return 0
    for group in groups.values():
        print(f"{group.description} ({len(group.locations)})")
        for loc in group.locations:
            print(f"  {loc.file}:{loc.line}")
    return 0


def _parse_issue_input(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"issue-number must be an integer, got {raw!r}") from exc


def _cmd_action(cfg: BotConfig, args: argparse.Namespace) -> int:
    mode = (os.environ.get("INPUT_MODE") or "scan").strip().lower()
    if mode not in MODES:
        raise ConfigError(f'Unknown mode: {mode}. Use "scan" or "resolve".')
    if mode == "resolve":
        args.issue_number = _parse_issue_input(
            os.environ.get("INPUT_ISSUE-NUMBER") or os.environ.get("INPUT_ISSUE_NUMBER")
        )
        return _cmd_resolve(cfg, args)
    args.root = None
    args.ref = None
    args.dry_run = False
    return _cmd_scan(cfg, args)


def _build_handlers(args: argparse.Namespace, cfg: BotConfig) -> dict[str, Any]:
    return {
        "scan": lambda: _cmd_scan(cfg, args),
        "resolve": lambda: _cmd_resolve(cfg, args),
        "list": lambda: _cmd_list(cfg, args),
        "action": lambda: _cmd_action(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("DOTOBOT_QUIET") == "1":
        args.quiet = True
    # list --json owns stdout; logs go to stderr
    json_output = bool(getattr(args, "json", False))
    quiet_logs = args.quiet or json_output
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return EXIT_CONFIG_FAILURE
    configure_logging(
        json_logging=args.json_logs or cfg.logging_json_enabled,
        level="WARNING" if quiet_logs else cfg.logging_level,
        stream=sys.stderr if json_output else None,
    )
    handlers = _build_handlers(args, cfg)
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
