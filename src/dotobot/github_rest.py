from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .retry import RetryConfig, TransientError, is_transient, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SERVER_URL = "https://github.com"
USER_AGENT = "doto-bot-rest/0.2.0"
HTTP_ERROR_STATUS = 400
PAGE_SIZE = 100

STATUS_NOT_FOUND = 404
STATUS_UNPROCESSABLE = 422
_RATE_LIMIT_STATUSES = (403, 429)


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


def _is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:  # noqa: PLR2004
        return True
    return response.status_code in _RATE_LIMIT_STATUSES and is_transient(response.text or "")


@dataclass
class GitHubRestClient:
    """REST client for one repository.

    Implements both the issue tracker and the source repository services
    consumed by the reconciler and the resolver.
    """

    token: str
    repo: str  # owner/name
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    timeout: float = 30
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", "2022-11-28")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=self.timeout,
            )
            if _is_rate_limited(response):
                hint = response.headers.get("Retry-After") if response.headers else None
                output = response.text or ""
                if hint:
                    output = f"Retry-After: {hint}\n{output}"
                raise TransientError(
                    f"GitHub API {method} {url} rate limited ({response.status_code})",
                    output=output,
                )
            return response

        try:
            response = run_with_retries(_run, cfg=self.retry)
        except TransientError as exc:
            raise GitHubAPIError(str(exc), status=429, response_text=exc.output) from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            return response.json()
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", PAGE_SIZE)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=dict(params))
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params["page"] + 1
        return results

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.repo}"

    # ---- Issue tracker ------------------------------------------------
    def get_label(self, name: str) -> dict[str, Any]:
        data = self._request("GET", f"{self._repo_path}/labels/{quote(name, safe='')}")
        return data if isinstance(data, dict) else {}

    def create_label(self, *, name: str, color: str, description: str = "") -> None:
        self._request(
            "POST",
            f"{self._repo_path}/labels",
            json_body={"name": name, "color": color, "description": description},
        )

    def list_issues(
        self, *, labels: Iterable[str] | None = None, state: str = "open"
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "state": state,
            "per_page": PAGE_SIZE,
            "page": 1,
            "sort": "created",
            "direction": "asc",
        }
        label_list = list(labels or [])
        if label_list:
            params["labels"] = ",".join(label_list)
        data = self._paginate(f"{self._repo_path}/issues", params=params)
        return [entry for entry in data if isinstance(entry, dict)]

    def get_issue(self, number: int) -> dict[str, Any]:
        data = self._request("GET", f"{self._repo_path}/issues/{number}")
        return data if isinstance(data, dict) else {}

    def create_issue(
        self, *, title: str, body: str, labels: Iterable[str] | None = None
    ) -> int | None:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        data = self._request("POST", f"{self._repo_path}/issues", json_body=payload)
        if isinstance(data, dict):
            number = data.get("number")
            if isinstance(number, int):
                return number
        return None

    def update_issue(
        self,
        *,
        number: int,
        body: str | None = None,
        state: str | None = None,
        state_reason: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if body is not None:
            payload["body"] = body
        if state is not None:
            payload["state"] = state
        if state_reason is not None:
            payload["state_reason"] = state_reason
        if payload:
            self._request("PATCH", f"{self._repo_path}/issues/{number}", json_body=payload)

    def create_comment(self, *, number: int, body: str) -> None:
        self._request(
            "POST", f"{self._repo_path}/issues/{number}/comments", json_body={"body": body}
        )

    # ---- Source repository ---------------------------------------------
    def get_repository(self) -> dict[str, Any]:
        data = self._request("GET", self._repo_path)
        return data if isinstance(data, dict) else {}

    def get_ref_sha(self, ref: str) -> str:
        data = self._request("GET", f"{self._repo_path}/git/ref/{ref}")
        try:
            return str(data["object"]["sha"])
        except (KeyError, TypeError) as exc:
            raise GitHubAPIError(f"Unexpected ref payload for {ref}") from exc

    def create_ref(self, *, ref: str, sha: str) -> None:
        self._request("POST", f"{self._repo_path}/git/refs", json_body={"ref": ref, "sha": sha})

    def update_ref(self, *, ref: str, sha: str, force: bool = False) -> None:
        self._request(
            "PATCH",
            f"{self._repo_path}/git/refs/{ref}",
            json_body={"sha": sha, "force": force},
        )

    def get_content(self, *, path: str, ref: str) -> Any:
        return self._request(
            "GET", f"{self._repo_path}/contents/{quote(path)}", params={"ref": ref}
        )

    def put_content(
        self,
        *,
        path: str,
        message: str,
        content: str,
        sha: str | None,
        branch: str,
    ) -> None:
        payload: dict[str, Any] = {"message": message, "content": content, "branch": branch}
        if sha:
            payload["sha"] = sha
        self._request("PUT", f"{self._repo_path}/contents/{quote(path)}", json_body=payload)

    def create_pull(self, *, title: str, head: str, base: str, body: str) -> dict[str, Any]:
        data = self._request(
            "POST",
            f"{self._repo_path}/pulls",
            json_body={"title": title, "head": head, "base": base, "body": body},
        )
        return data if isinstance(data, dict) else {}


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "DEFAULT_API_URL",
    "DEFAULT_SERVER_URL",
    "STATUS_NOT_FOUND",
    "STATUS_UNPROCESSABLE",
]
