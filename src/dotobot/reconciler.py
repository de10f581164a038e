"""Issue reconciler.

Diffs the TODO groups of the current scan against the open managed issues
on the tracker and decides, per normalized description:

* ``create``: group present in source, no tracked issue
* ``update``: tracked issue exists but its recorded locations differ (order
  and count matter); only the body is rewritten, never the title
* ``skip``: tracked issue already records exactly these locations
* ``close``: tracked issue whose description no longer appears in source;
  closed as *not planned* with an explanatory comment

Planning is pure (``plan_reconciliation``); ``sync_issues`` wraps it with the
tracker I/O. Calls are strictly sequential and any tracker failure aborts
the remainder of the run; each individual step is idempotent, so a failed
run can simply be repeated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypedDict

from .config import DEFAULT_LABEL, DEFAULT_LABEL_COLOR, DEFAULT_LABEL_DESCRIPTION
from .github_rest import STATUS_NOT_FOUND, GitHubAPIError
from .issue_body import (
    STALE_COMMENT,
    build_issue_body,
    build_issue_title,
    is_managed,
    parse_locations_from_body,
)
from .logging import get_logger
from .models import ParsedLocation, TodoGroup, TrackedIssue
from .services import IssueTracker

CLOSE_STATE_REASON = "not_planned"


class PlanEntry(TypedDict, total=False):
    key: str
    action: str  # create|update|skip|close
    title: str
    number: int | None
    body: str | None
    locations: int


class ChangeEntry(TypedDict, total=False):
    key: str
    title: str
    number: int | None


class Totals(TypedDict):
    created: int
    updated: int
    closed: int
    unchanged: int


class SyncSummary(TypedDict):
    dry_run: bool
    totals: Totals
    created: list[ChangeEntry]
    updated: list[ChangeEntry]
    closed: list[ChangeEntry]
    unchanged: list[ChangeEntry]


def ensure_label(
    tracker: IssueTracker,
    *,
    label: str = DEFAULT_LABEL,
    color: str = DEFAULT_LABEL_COLOR,
    description: str = DEFAULT_LABEL_DESCRIPTION,
    dry_run: bool = False,
) -> bool:
    """Make sure ``label`` exists; returns True when it had to be created."""
    try:
        tracker.get_label(label)
        return False
    except GitHubAPIError as exc:
        if exc.status != STATUS_NOT_FOUND:
            raise
    logger = get_logger()
    if dry_run:
        logger.info(f'Label "{label}" missing; would create it [DRY]')
        return True
    logger.info(f'Creating "{label}" label...')
    tracker.create_label(name=label, color=color, description=description)
    return True


def _to_tracked(entry: Mapping[str, Any]) -> TrackedIssue | None:
    number = entry.get("number")
    if not isinstance(number, int):
        return None
    # The issues endpoint also lists pull requests
    if entry.get("pull_request"):
        return None
    body = entry.get("body")
    if not isinstance(body, str) or not is_managed(body):
        return None
    return TrackedIssue(number=number, title=str(entry.get("title") or ""), body=body)


def fetch_managed_issues(tracker: IssueTracker, label: str = DEFAULT_LABEL) -> list[TrackedIssue]:
    """Open issues carrying ``label`` whose body holds the managed marker."""
    issues: list[TrackedIssue] = []
    for entry in tracker.list_issues(labels=[label], state="open"):
        tracked = _to_tracked(entry)
        if tracked is not None:
            issues.append(tracked)
    return issues


def index_by_key(issues: Iterable[TrackedIssue]) -> dict[str, TrackedIssue]:
    """Map normalized description -> issue. Duplicates: last one wins."""
    index: dict[str, TrackedIssue] = {}
    for issue in issues:
        key = issue.key
        previous = index.get(key)
        if previous is not None:
            get_logger().warning(
                f"Issues #{previous.number} and #{issue.number} track the same TODO; "
                f"using #{issue.number}",
                description=key,
            )
        index[key] = issue
    return index


def _current_locations(group: TodoGroup) -> list[ParsedLocation]:
    return [ParsedLocation(file=loc.file, line=loc.line) for loc in group.locations]


def plan_reconciliation(
    groups: Mapping[str, TodoGroup],
    existing: Mapping[str, TrackedIssue],
    *,
    repo_url: str,
    branch: str,
) -> list[PlanEntry]:
    plan: list[PlanEntry] = []
    for key, group in groups.items():
        title = build_issue_title(group.description)
        body = build_issue_body(group.description, group.locations, repo_url, branch)
        issue = existing.get(key)
        if issue is None:
            plan.append(
                PlanEntry(
                    key=key,
                    action="create",
                    title=title,
                    number=None,
                    body=body,
                    locations=len(group.locations),
                )
            )
            continue
        changed = parse_locations_from_body(issue.body) != _current_locations(group)
        plan.append(
            PlanEntry(
                key=key,
                action="update" if changed else "skip",
                title=issue.title,
                number=issue.number,
                body=body if changed else None,
                locations=len(group.locations),
            )
        )
    for key, issue in existing.items():
        if key in groups:
            continue
        plan.append(
            PlanEntry(
                key=key,
                action="close",
                title=issue.title,
                number=issue.number,
                body=None,
                locations=0,
            )
        )
    return plan


def _empty_summary(dry_run: bool) -> SyncSummary:
    return SyncSummary(
        dry_run=dry_run,
        totals=Totals(created=0, updated=0, closed=0, unchanged=0),
        created=[],
        updated=[],
        closed=[],
        unchanged=[],
    )


def _apply_entry(
    tracker: IssueTracker, entry: PlanEntry, *, label: str, dry_run: bool
) -> int | None:
    action = entry["action"]
    number = entry.get("number")
    logger = get_logger()
    if action == "skip":
        logger.debug(f"Issue #{number} is up to date: {entry['title']}")
        return number
    logger.log_issue_action(action, entry["title"], issue_number=number, dry_run=dry_run)
    if dry_run:
        return number
    if action == "create":
        return tracker.create_issue(title=entry["title"], body=entry["body"] or "", labels=[label])
    if number is None:
        raise ValueError(f"{action} entry for '{entry['key']}' carries no issue number")
    if action == "update":
        tracker.update_issue(number=number, body=entry["body"])
    elif action == "close":
        tracker.update_issue(number=number, state="closed", state_reason=CLOSE_STATE_REASON)
        tracker.create_comment(number=number, body=STALE_COMMENT)
    return number


_SUMMARY_BUCKETS = {
    "create": "created",
    "update": "updated",
    "close": "closed",
    "skip": "unchanged",
}


def sync_issues(
    tracker: IssueTracker,
    groups: Mapping[str, TodoGroup],
    *,
    repo_url: str,
    default_branch: str,
    label: str = DEFAULT_LABEL,
    label_color: str = DEFAULT_LABEL_COLOR,
    label_description: str = DEFAULT_LABEL_DESCRIPTION,
    dry_run: bool = False,
) -> SyncSummary:
    """Create / update / close managed issues so they mirror ``groups``."""
    logger = get_logger()
    ensure_label(
        tracker,
        label=label,
        color=label_color,
        description=label_description,
        dry_run=dry_run,
    )
    existing_issues = fetch_managed_issues(tracker, label)
    logger.info(f"Found {len(existing_issues)} existing doto-bot issues")
    existing = index_by_key(existing_issues)
    plan = plan_reconciliation(groups, existing, repo_url=repo_url, branch=default_branch)

    summary = _empty_summary(dry_run)
    for entry in plan:
        number = _apply_entry(tracker, entry, label=label, dry_run=dry_run)
        bucket = _SUMMARY_BUCKETS[entry["action"]]
        summary[bucket].append(  # type: ignore[literal-required]
            ChangeEntry(key=entry["key"], title=entry["title"], number=number)
        )
        summary["totals"][bucket] += 1  # type: ignore[literal-required]
    logger.log_operation("sync_issues", dry_run=dry_run, totals=dict(summary["totals"]))
    return summary


__all__ = [
    "PlanEntry",
    "SyncSummary",
    "ensure_label",
    "fetch_managed_issues",
    "index_by_key",
    "plan_reconciliation",
    "sync_issues",
]
