"""Interfaces of the two remote services the engine talks to.

``GitHubRestClient`` satisfies both; tests substitute in-memory fakes.
Implementations signal failures with ``GitHubAPIError`` carrying the HTTP
status so callers can treat 404 / 422 as control flow.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol


class IssueTracker(Protocol):
    def get_label(self, name: str) -> dict[str, Any]: ...

    def create_label(self, *, name: str, color: str, description: str = "") -> None: ...

    def list_issues(
        self, *, labels: Iterable[str] | None = None, state: str = "open"
    ) -> list[dict[str, Any]]: ...

    def get_issue(self, number: int) -> dict[str, Any]: ...

    def create_issue(
        self, *, title: str, body: str, labels: Iterable[str] | None = None
    ) -> int | None: ...

    def update_issue(
        self,
        *,
        number: int,
        body: str | None = None,
        state: str | None = None,
        state_reason: str | None = None,
    ) -> None: ...

    def create_comment(self, *, number: int, body: str) -> None: ...


class SourceRepository(Protocol):
    def get_repository(self) -> dict[str, Any]: ...

    def get_ref_sha(self, ref: str) -> str: ...

    def create_ref(self, *, ref: str, sha: str) -> None: ...

    def update_ref(self, *, ref: str, sha: str, force: bool = False) -> None: ...

    def get_content(self, *, path: str, ref: str) -> Any: ...

    def put_content(
        self,
        *,
        path: str,
        message: str,
        content: str,
        sha: str | None,
        branch: str,
    ) -> None: ...

    def create_pull(self, *, title: str, head: str, base: str, body: str) -> dict[str, Any]: ...


class GitHubService(IssueTracker, SourceRepository, Protocol):
    """One backend serving both roles, as the REST client does."""


__all__ = ["IssueTracker", "SourceRepository", "GitHubService"]
