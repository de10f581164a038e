"""doto-bot - keep inline TODO annotations in sync with GitHub issues.

High-level public API:

from dotobot import scan, group_annotations, sync_issues, resolve_issue

annotations = scan('.')
groups = group_annotations(annotations)
summary = sync_issues(client, groups, repo_url=url, default_branch='main')
print(summary['totals'])

The CLI (``dotobot`` / ``python -m dotobot``) delegates to this library.
"""

from __future__ import annotations

from .config import BotConfig, ConfigError, load_config
from .grouping import group_annotations
from .issue_body import build_issue_body, parse_locations_from_body
from .models import Annotation, ParsedLocation, TodoGroup, TodoLocation, TrackedIssue
from .reconciler import sync_issues
from .resolver import remove_line_from_content, resolve_issue
from .scanner import clean_description, scan

__version__ = "0.2.0"

__all__ = [
    "Annotation",
    "TodoLocation",
    "TodoGroup",
    "TrackedIssue",
    "ParsedLocation",
    "BotConfig",
    "ConfigError",
    "load_config",
    "scan",
    "clean_description",
    "group_annotations",
    "build_issue_body",
    "parse_locations_from_body",
    "sync_issues",
    "resolve_issue",
    "remove_line_from_content",
    "__version__",
]
