"""Resolution engine.

When a managed issue is closed, recover its recorded locations from the
body and open a pull request that deletes those lines.

Lines are removed bottom-up within each file (descending line numbers) so a
removal never shifts the position of a line still pending in the same file.
Content is always read from the resolution branch, and every write carries
the blob SHA it was read at, so a concurrent change makes the write fail
instead of being silently overwritten.

Expected conditions are control flow: an existing resolution branch is
force-reset to the default branch head, a file that disappeared is skipped,
and out-of-range line numbers are ignored. Anything else propagates; a
partially applied resolution is left as-is and can be re-run.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .config import DEFAULT_BRANCH_PREFIX
from .github_rest import STATUS_NOT_FOUND, STATUS_UNPROCESSABLE, GitHubAPIError
from .issue_body import (
    build_pull_request_body,
    build_pull_request_title,
    build_resolution_comment,
    is_managed,
    parse_locations_from_body,
)
from .logging import get_logger
from .models import ParsedLocation
from .services import IssueTracker, SourceRepository


@dataclass
class ResolutionResult:
    issue_number: int
    branch: str
    base: str
    pull_number: int | None = None
    pull_url: str | None = None
    removed: list[ParsedLocation] = field(default_factory=list)
    updated_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)


def remove_line_from_content(content: str, line_number: int) -> str:
    """Remove the 1-based ``line_number``; out-of-range input is a no-op."""
    lines = content.split("\n")
    if line_number < 1 or line_number > len(lines):
        return content
    del lines[line_number - 1]
    return "\n".join(lines)


def remove_lines_from_content(content: str, line_numbers: Iterable[int]) -> str:
    for line_number in sorted(set(line_numbers), reverse=True):
        content = remove_line_from_content(content, line_number)
    return content


def group_lines_by_file(locations: Iterable[ParsedLocation]) -> dict[str, list[int]]:
    """File -> line numbers sorted descending, files in first-seen order."""
    grouped: dict[str, list[int]] = {}
    for loc in locations:
        grouped.setdefault(loc.file, []).append(loc.line)
    for lines in grouped.values():
        lines.sort(reverse=True)
    return grouped


def resolution_branch_name(issue_number: int, prefix: str = DEFAULT_BRANCH_PREFIX) -> str:
    return f"{prefix}/resolve-issue-{issue_number}"


def _decode_content(payload: dict[str, Any]) -> str:
    raw = payload.get("content") or ""
    try:
        return base64.b64decode(raw).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"Cannot decode content of {payload.get('path')}") from exc


def _encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _prepare_branch(repository: SourceRepository, branch: str, sha: str) -> None:
    logger = get_logger()
    try:
        repository.create_ref(ref=f"refs/heads/{branch}", sha=sha)
        logger.info(f"Created branch: {branch}")
    except GitHubAPIError as exc:
        if exc.status != STATUS_UNPROCESSABLE:
            raise
        logger.info(f"Branch {branch} already exists. Updating...")
        repository.update_ref(ref=f"heads/{branch}", sha=sha, force=True)


def _rewrite_file(
    repository: SourceRepository,
    *,
    path: str,
    lines: list[int],
    branch: str,
    issue_number: int,
) -> list[int]:
    """Delete ``lines`` from ``path`` on ``branch``; returns the lines actually removed."""
    logger = get_logger()
    try:
        payload = repository.get_content(path=path, ref=branch)
    except GitHubAPIError as exc:
        if exc.status != STATUS_NOT_FOUND:
            raise
        logger.warning(f"File {path} no longer exists. Skipping.", file=path)
        return []
    if not isinstance(payload, dict) or payload.get("type") != "file" or "content" not in payload:
        logger.warning(f"{path} is not a regular file. Skipping.", file=path)
        return []
    original = _decode_content(payload)
    line_count = len(original.split("\n"))
    in_range = [line for line in lines if 1 <= line <= line_count]
    if not in_range:
        logger.warning(f"No matching lines left in {path}. Skipping.", file=path)
        return []
    updated = remove_lines_from_content(original, in_range)
    repository.put_content(
        path=path,
        message=f"Remove TODO from {path} (resolves #{issue_number})",
        content=_encode_content(updated),
        sha=payload.get("sha"),
        branch=branch,
    )
    logger.info(f"Removed TODO line(s) from {path}", file=path, lines=in_range)
    return in_range


def resolve_issue(
    tracker: IssueTracker,
    repository: SourceRepository,
    issue_number: int,
    *,
    branch_prefix: str = DEFAULT_BRANCH_PREFIX,
) -> ResolutionResult | None:
    """Open a pull request removing the TODO lines recorded on ``issue_number``.

    Returns None when the issue is not managed by doto-bot or records no
    locations.
    """
    logger = get_logger()
    issue = tracker.get_issue(issue_number)
    body = issue.get("body")
    if not isinstance(body, str) or not is_managed(body):
        logger.info(f"Issue #{issue_number} is not managed by doto-bot. Skipping.")
        return None

    locations = parse_locations_from_body(body)
    if not locations:
        logger.warning(f"No TODO locations found in issue #{issue_number}. Skipping.")
        return None
    logger.info(
        f"Found {len(locations)} TODO location(s) to remove for issue #{issue_number}"
    )

    default_branch = str(repository.get_repository()["default_branch"])
    base_sha = repository.get_ref_sha(f"heads/{default_branch}")
    branch = resolution_branch_name(issue_number, branch_prefix)
    _prepare_branch(repository, branch, base_sha)

    result = ResolutionResult(issue_number=issue_number, branch=branch, base=default_branch)
    removed_lines: dict[str, set[int]] = {}
    for path, lines in group_lines_by_file(locations).items():
        removed = _rewrite_file(
            repository, path=path, lines=lines, branch=branch, issue_number=issue_number
        )
        if removed:
            result.updated_files.append(path)
            removed_lines[path] = set(removed)
        else:
            result.skipped_files.append(path)
    result.removed = [loc for loc in locations if loc.line in removed_lines.get(loc.file, ())]
    if not result.removed:
        logger.warning(f"Nothing to remove for issue #{issue_number}; no PR opened.")
        return result

    pull = repository.create_pull(
        title=build_pull_request_title(str(issue.get("title") or "")),
        head=branch,
        base=default_branch,
        body=build_pull_request_body(issue_number, result.removed),
    )
    pull_number = pull.get("number")
    result.pull_number = pull_number if isinstance(pull_number, int) else None
    result.pull_url = pull.get("html_url")
    logger.info(f"Created PR #{result.pull_number}: {result.pull_url}")

    if result.pull_number is not None:
        tracker.create_comment(
            number=issue_number, body=build_resolution_comment(result.pull_number)
        )
    return result


__all__ = [
    "ResolutionResult",
    "remove_line_from_content",
    "remove_lines_from_content",
    "group_lines_by_file",
    "resolution_branch_name",
    "resolve_issue",
]
