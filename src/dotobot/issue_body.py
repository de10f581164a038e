"""Managed issue body wire format.

The issue body is the only persisted state between runs: it records which
locations are still outstanding for a TODO. Layout::

    <!-- doto-bot-managed -->

    ## TODO

    > <description>

    ### Locations

    <!-- doto-locations-start -->

    | File | Line | Code |
    |------|------|------|
    | [<file>#L<line>](<repo-url>/blob/<branch>/<file>#L<line>) | <line> | `<snippet>` |

    <!-- doto-locations-end -->

    ---
    *footer*

Parsing only looks at rows starting with ``| [<file>#L<line>]`` between the
two location markers, so table styling and footer text may change without
breaking older bodies. ``parse_locations_from_body`` is the compatibility boundary.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import quote

from .models import ParsedLocation, TodoLocation

ISSUE_TITLE_PREFIX = "TODO: "
MANAGED_MARKER = "<!-- doto-bot-managed -->"
LOCATIONS_START = "<!-- doto-locations-start -->"
LOCATIONS_END = "<!-- doto-locations-end -->"
SNIPPET_MAX_LENGTH = 120

FOOTER = (
    "*This issue is automatically managed by **doto-bot**. Closing this issue will "
    "trigger a PR to remove the TODO annotation(s) from the codebase.*"
)
STALE_COMMENT = (
    "🤖 **doto-bot**: This TODO is no longer present in the codebase. Closing automatically."
)

# Anchored at the row start; link text is lazy so paths may hold `]` or `#`
_ROW_RE = re.compile(r"^\|\s*\[(.+?)#L(\d+)\](?=\(|\s*\|)", re.MULTILINE)
_BACKTICK_RUN = re.compile(r"`+")


def is_managed(body: str | None) -> bool:
    return body is not None and MANAGED_MARKER in body


def build_issue_title(description: str) -> str:
    return f"{ISSUE_TITLE_PREFIX}{description}"


def extract_description_from_title(title: str) -> str:
    if title.startswith(ISSUE_TITLE_PREFIX):
        return title[len(ISSUE_TITLE_PREFIX):].strip()
    return title.strip()


def _code_cell(text: str) -> str:
    """Render ``text`` as an inline code span that is safe inside a table cell."""
    text = text.replace("|", "\\|")
    longest = max((len(run) for run in _BACKTICK_RUN.findall(text)), default=0)
    fence = "`" * (longest + 1)
    if longest:
        return f"{fence} {text} {fence}"
    return f"{fence}{text}{fence}"


def _location_row(loc: TodoLocation, repo_url: str, branch: str) -> str:
    target = f"{repo_url}/blob/{branch}/{quote(loc.file)}#L{loc.line}"
    link = f"[{loc.file}#L{loc.line}]({target})"
    snippet = loc.raw_line.strip()[:SNIPPET_MAX_LENGTH]
    return f"| {link} | {loc.line} | {_code_cell(snippet)} |"


def build_issue_body(
    description: str,
    locations: Sequence[TodoLocation],
    repo_url: str,
    branch: str,
) -> str:
    rows = "\n".join(_location_row(loc, repo_url, branch) for loc in locations)
    return (
        f"{MANAGED_MARKER}\n"
        "\n"
        "## TODO\n"
        "\n"
        f"> {description}\n"
        "\n"
        "### Locations\n"
        "\n"
        f"{LOCATIONS_START}\n"
        "\n"
        "| File | Line | Code |\n"
        "|------|------|------|\n"
        f"{rows}\n"
        "\n"
        f"{LOCATIONS_END}\n"
        "\n"
        "---\n"
        f"{FOOTER}\n"
    )


def parse_locations_from_body(body: str | None) -> list[ParsedLocation]:
    if not body:
        return []
    start = body.find(LOCATIONS_START)
    end = body.find(LOCATIONS_END)
    if start == -1 or end == -1:
        return []
    section = body[start + len(LOCATIONS_START):end]
    return [
        ParsedLocation(file=m.group(1), line=int(m.group(2)))
        for m in _ROW_RE.finditer(section)
    ]


def build_pull_request_title(issue_title: str) -> str:
    return f"Remove TODO: {extract_description_from_title(issue_title)}"


def build_pull_request_body(issue_number: int, locations: Sequence[ParsedLocation]) -> str:
    removed = "\n".join(f"- `{loc.file}` line {loc.line}" for loc in locations)
    return (
        "## Automated TODO Removal\n"
        "\n"
        f"This PR was automatically created by **doto-bot** because issue #{issue_number} "
        "was closed.\n"
        "\n"
        "### Changes\n"
        "Removes the following TODO annotation(s):\n"
        "\n"
        f"{removed}\n"
        "\n"
        "---\n"
        f"Closes #{issue_number}\n"
    )


def build_resolution_comment(pull_number: int) -> str:
    return (
        f"🤖 **doto-bot**: Created PR #{pull_number} to remove the TODO annotation(s) "
        "from the codebase."
    )


__all__ = [
    "ISSUE_TITLE_PREFIX",
    "MANAGED_MARKER",
    "LOCATIONS_START",
    "LOCATIONS_END",
    "SNIPPET_MAX_LENGTH",
    "STALE_COMMENT",
    "is_managed",
    "build_issue_title",
    "build_issue_body",
    "extract_description_from_title",
    "parse_locations_from_body",
    "build_pull_request_title",
    "build_pull_request_body",
    "build_resolution_comment",
]
