from __future__ import annotations

from dataclasses import dataclass, field


def normalize_key(description: str) -> str:
    """Identity key shared by grouping and reconciliation (trim + casefold)."""
    return description.strip().lower()


@dataclass(frozen=True)
class Annotation:
    """Single TODO line found by the scanner.

    ``file`` is always relative to the scan root (POSIX separators) so the
    same tree checked out elsewhere yields identical identities.
    """

    file: str
    line: int  # 1-based
    description: str
    raw_line: str


@dataclass(frozen=True)
class TodoLocation:
    file: str
    line: int
    raw_line: str


@dataclass
class TodoGroup:
    description: str  # first-seen casing
    locations: list[TodoLocation] = field(default_factory=list)

    @property
    def key(self) -> str:
        return normalize_key(self.description)


@dataclass(frozen=True)
class ParsedLocation:
    """``{file, line}`` pair recovered from a managed issue body."""

    file: str
    line: int


@dataclass
class TrackedIssue:
    number: int
    title: str
    body: str

    @property
    def key(self) -> str:
        from .issue_body import extract_description_from_title

        return normalize_key(extract_description_from_title(self.title))


__all__ = [
    "Annotation",
    "TodoLocation",
    "TodoGroup",
    "ParsedLocation",
    "TrackedIssue",
    "normalize_key",
]
