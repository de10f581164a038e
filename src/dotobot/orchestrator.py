"""High-level orchestration of the two run modes.

``run_scan``: scan the working tree, group TODOs and sync managed issues.
``run_resolve``: open the TODO-removal pull request for a closed issue.

Both return a JSON-serializable summary; ``run_scan`` also writes it to
``output.summary_json`` when configured.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import BotConfig, ConfigError
from .github_rest import GitHubRestClient
from .grouping import group_annotations
from .logging import get_logger
from .reconciler import sync_issues
from .resolver import resolve_issue
from .scanner import scan
from .services import GitHubService


def build_client(cfg: BotConfig, token: str | None) -> GitHubRestClient:
    if not token:
        raise ConfigError("GITHUB_TOKEN environment variable is required.")
    if not cfg.github_repo or "/" not in cfg.github_repo:
        raise ConfigError("GitHub repository must be given as owner/repo.")
    return GitHubRestClient(token=token, repo=cfg.github_repo, base_url=cfg.api_url)


def write_summary(path: str | Path, summary: dict[str, Any]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")


def run_scan(
    cfg: BotConfig,
    client: GitHubService,
    *,
    root: str | Path,
    ref: str | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    logger = get_logger()
    default_branch = str(client.get_repository()["default_branch"])
    expected_ref = f"refs/heads/{default_branch}"
    summary: dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "repo": cfg.github_repo,
        "default_branch": default_branch,
        "dry_run": dry_run,
    }
    if ref and ref != expected_ref:
        logger.info(
            f"Current ref ({ref}) is not the default branch ({expected_ref}). Skipping scan."
        )
        summary["status"] = "skipped"
        return summary

    logger.info(f"Default branch: {default_branch}")
    with logger.timed_operation("scan_and_sync", dry_run=dry_run):
        annotations = scan(root, cfg.ignore_dirs)
        groups = group_annotations(annotations)
        logger.info(f"Grouped into {len(groups)} unique TODO(s)")
        result = sync_issues(
            client,
            groups,
            repo_url=cfg.repo_url(),
            default_branch=default_branch,
            label=cfg.label_name,
            label_color=cfg.label_color,
            label_description=cfg.label_description,
            dry_run=dry_run,
        )
    summary.update(
        {
            "status": "synced",
            "todos": len(annotations),
            "unique_todos": len(groups),
            **result,
        }
    )
    logger.info("=== Doto Bot Scan Complete ===")
    if cfg.summary_json:
        write_summary(cfg.summary_json, summary)
    return summary


def run_resolve(cfg: BotConfig, client: GitHubService, issue_number: int) -> dict[str, Any]:
    if issue_number < 1:
        raise ConfigError("issue-number input is required for resolve mode.")
    logger = get_logger()
    logger.info(f"Resolving TODO for issue #{issue_number}")
    result = resolve_issue(client, client, issue_number, branch_prefix=cfg.branch_prefix)
    logger.info("=== Doto Bot Resolve Complete ===")
    if result is None:
        return {"issue_number": issue_number, "status": "skipped"}
    payload = asdict(result)
    payload["status"] = "resolved" if result.pull_number is not None else "nothing_to_remove"
    return payload


__all__ = ["build_client", "write_summary", "run_scan", "run_resolve"]
