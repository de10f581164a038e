"""Pytest configuration for doto-bot tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides an in-memory stand-in
for GitHub that records every call the engine makes.
"""

from __future__ import annotations

import base64
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Subprocess-based CLI tests import the in-repo package through PYTHONPATH
py_path = os.environ.get("PYTHONPATH", "")
parts = [p for p in py_path.split(os.pathsep) if p]
if str(SRC) not in parts:
    parts.insert(0, str(SRC))
    os.environ["PYTHONPATH"] = os.pathsep.join(parts)

from dotobot.github_rest import GitHubAPIError  # noqa: E402


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class FakeGitHub:
    """In-memory issue tracker + source repository.

    ``calls`` records ``(method, kwargs)`` for every mutating call so tests can
    assert on the exact set of tracker operations performed.
    """

    def __init__(self, *, default_branch: str = "main") -> None:
        self.default_branch = default_branch
        self.labels: dict[str, dict[str, Any]] = {}
        self.issues: dict[int, dict[str, Any]] = {}
        self.comments: dict[int, list[str]] = {}
        self.refs: dict[str, str] = {f"heads/{default_branch}": "base-sha"}
        self.files: dict[tuple[str, str], tuple[str, str]] = {}
        self.pulls: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._next_issue = 1
        self._blob = 0
        self.fail_on: dict[str, Exception] = {}

    # ---- helpers ----------------------------------------------------
    def _maybe_fail(self, method: str) -> None:
        exc = self.fail_on.get(method)
        if exc is not None:
            raise exc

    def add_issue(
        self,
        title: str,
        body: str,
        *,
        labels: Iterable[str] = ("todo",),
        state: str = "open",
        number: int | None = None,
    ) -> int:
        if number is None:
            number = self._next_issue
        self._next_issue = max(self._next_issue, number + 1)
        self.issues[number] = {
            "number": number,
            "title": title,
            "body": body,
            "labels": [{"name": name} for name in labels],
            "state": state,
        }
        return number

    def add_file(self, path: str, content: str, *, branch: str = "main") -> None:
        self._blob += 1
        self.files[(branch, path)] = (content, f"blob-{self._blob}")

    def file_text(self, path: str, branch: str) -> str:
        return self.files[(branch, path)][0]

    def mutations(self) -> list[str]:
        return [name for name, _ in self.calls]

    # ---- issue tracker ---------------------------------------------
    def get_label(self, name: str) -> dict[str, Any]:
        self._maybe_fail("get_label")
        if name not in self.labels:
            raise GitHubAPIError("Not Found", status=404)
        return self.labels[name]

    def create_label(self, *, name: str, color: str, description: str = "") -> None:
        self.calls.append(("create_label", {"name": name, "color": color}))
        self.labels[name] = {"name": name, "color": color, "description": description}

    def list_issues(
        self, *, labels: Iterable[str] | None = None, state: str = "open"
    ) -> list[dict[str, Any]]:
        wanted = set(labels or [])
        out = []
        for issue in sorted(self.issues.values(), key=lambda i: i["number"]):
            names = {lbl["name"] for lbl in issue["labels"]}
            if issue["state"] == state and wanted <= names:
                out.append(dict(issue))
        return out

    def get_issue(self, number: int) -> dict[str, Any]:
        if number not in self.issues:
            raise GitHubAPIError("Not Found", status=404)
        return dict(self.issues[number])

    def create_issue(
        self, *, title: str, body: str, labels: Iterable[str] | None = None
    ) -> int | None:
        self._maybe_fail("create_issue")
        label_list = list(labels or [])
        self.calls.append(("create_issue", {"title": title, "body": body, "labels": label_list}))
        return self.add_issue(title, body, labels=label_list)

    def update_issue(
        self,
        *,
        number: int,
        body: str | None = None,
        state: str | None = None,
        state_reason: str | None = None,
    ) -> None:
        self._maybe_fail("update_issue")
        self.calls.append(
            (
                "update_issue",
                {"number": number, "body": body, "state": state, "state_reason": state_reason},
            )
        )
        issue = self.issues[number]
        if body is not None:
            issue["body"] = body
        if state is not None:
            issue["state"] = state
            issue["state_reason"] = state_reason

    def create_comment(self, *, number: int, body: str) -> None:
        self.calls.append(("create_comment", {"number": number, "body": body}))
        self.comments.setdefault(number, []).append(body)

    # ---- source repository -----------------------------------------
    def get_repository(self) -> dict[str, Any]:
        return {"default_branch": self.default_branch}

    def get_ref_sha(self, ref: str) -> str:
        if ref not in self.refs:
            raise GitHubAPIError("Not Found", status=404)
        return self.refs[ref]

    def create_ref(self, *, ref: str, sha: str) -> None:
        short = ref.removeprefix("refs/")
        if short in self.refs:
            raise GitHubAPIError("Reference already exists", status=422)
        self.calls.append(("create_ref", {"ref": ref, "sha": sha}))
        self.refs[short] = sha
        branch = short.removeprefix("heads/")
        for (src_branch, path), value in list(self.files.items()):
            if src_branch == self.default_branch:
                self.files[(branch, path)] = value

    def update_ref(self, *, ref: str, sha: str, force: bool = False) -> None:
        self.calls.append(("update_ref", {"ref": ref, "sha": sha, "force": force}))
        self.refs[ref] = sha
        branch = ref.removeprefix("heads/")
        for (src_branch, path), value in list(self.files.items()):
            if src_branch == self.default_branch:
                self.files[(branch, path)] = value

    def get_content(self, *, path: str, ref: str) -> Any:
        if (ref, path) not in self.files:
            raise GitHubAPIError("Not Found", status=404)
        content, sha = self.files[(ref, path)]
        return {"type": "file", "path": path, "sha": sha, "content": _b64(content)}

    def put_content(
        self,
        *,
        path: str,
        message: str,
        content: str,
        sha: str | None,
        branch: str,
    ) -> None:
        current = self.files.get((branch, path))
        if current is not None and current[1] != sha:
            raise GitHubAPIError("sha mismatch", status=409)
        self.calls.append(
            ("put_content", {"path": path, "message": message, "branch": branch, "sha": sha})
        )
        self._blob += 1
        text = base64.b64decode(content).decode("utf-8")
        self.files[(branch, path)] = (text, f"blob-{self._blob}")

    def create_pull(self, *, title: str, head: str, base: str, body: str) -> dict[str, Any]:
        self.calls.append(("create_pull", {"title": title, "head": head, "base": base}))
        number = 500 + len(self.pulls)
        pull = {
            "number": number,
            "html_url": f"https://github.com/acme/widgets/pull/{number}",
            "title": title,
            "head": head,
            "base": base,
            "body": body,
        }
        self.pulls.append(pull)
        return pull


@pytest.fixture
def fake_github() -> FakeGitHub:
    gh = FakeGitHub()
    gh.labels["todo"] = {"name": "todo"}
    return gh
