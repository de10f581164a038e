import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from dotobot.github_rest import GitHubAPIError, GitHubRestClient
from dotobot.retry import RetryConfig


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[_DummyResponse]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "json": json, "params": params}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        return self._responses.pop(0)


def _client(session: _DummySession, **kwargs: Any) -> GitHubRestClient:
    return GitHubRestClient(token="tkn", repo="acme/widgets", session=session, **kwargs)


def test_session_carries_auth_headers():
    session = _DummySession([])
    _client(session)

    assert session.headers["Authorization"] == "Bearer tkn"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_list_issues_paginates_until_short_page():
    full_page = [{"number": n} for n in range(1, 101)]
    session = _DummySession([_DummyResponse(200, full_page), _DummyResponse(200, [{"number": 101}])])

    issues = _client(session).list_issues(labels=["todo"], state="open")

    assert len(issues) == 101
    assert [entry[2]["params"]["page"] for entry in session.request_log] == [1, 2]
    params = session.request_log[0][2]["params"]
    assert params["labels"] == "todo"
    assert params["sort"] == "created" and params["direction"] == "asc"


def test_create_issue_returns_number():
    session = _DummySession([_DummyResponse(201, {"number": 321})])

    number = _client(session).create_issue(title="TODO: x", body="b", labels=["todo"])

    assert number == 321
    method, url, meta = session.request_log[0]
    assert method == "POST" and url.endswith("/repos/acme/widgets/issues")
    assert meta["json"] == {"title": "TODO: x", "body": "b", "labels": ["todo"]}


def test_close_sends_state_reason():
    session = _DummySession([_DummyResponse(200, {"number": 5})])

    _client(session).update_issue(number=5, state="closed", state_reason="not_planned")

    method, url, meta = session.request_log[0]
    assert method == "PATCH" and url.endswith("/issues/5")
    assert meta["json"] == {"state": "closed", "state_reason": "not_planned"}


def test_ref_and_content_endpoints():
    session = _DummySession(
        [
            _DummyResponse(200, {"object": {"sha": "abc123"}}),
            _DummyResponse(200, {"ref": "refs/heads/x"}),
            _DummyResponse(200, {"type": "file", "sha": "blob", "content": ""}),
            _DummyResponse(200, {"content": {}}),
        ]
    )
    client = _client(session)

    assert client.get_ref_sha("heads/main") == "abc123"
    client.update_ref(ref="heads/x", sha="abc123", force=True)
    client.get_content(path="src/a b.py", ref="x")
    client.put_content(path="src/a.py", message="m", content="Zm9v", sha="blob", branch="x")

    urls = [entry[1] for entry in session.request_log]
    assert urls[0].endswith("/repos/acme/widgets/git/ref/heads/main")
    assert urls[1].endswith("/git/refs/heads/x")
    assert session.request_log[1][2]["json"] == {"sha": "abc123", "force": True}
    assert urls[2].endswith("/contents/src/a%20b.py")
    assert session.request_log[2][2]["params"] == {"ref": "x"}
    assert session.request_log[3][2]["json"]["sha"] == "blob"


def test_rest_client_raises_on_error():
    session = _DummySession([_DummyResponse(500, {"message": "boom"})])

    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session).list_issues(state="all")
    assert excinfo.value.status == 500


def test_not_found_carries_status():
    session = _DummySession([_DummyResponse(404, {"message": "Not Found"})])

    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session).get_label("todo")
    assert excinfo.value.status == 404


def test_rate_limit_is_retried(monkeypatch):
    monkeypatch.setattr("dotobot.retry.time.sleep", lambda _s: None)
    session = _DummySession(
        [
            _DummyResponse(429, {"message": "slow down"}, headers={"Retry-After": "1"}),
            _DummyResponse(200, {"default_branch": "main"}),
        ]
    )

    repo = _client(session, retry=RetryConfig(attempts=3, base_sleep=0)).get_repository()

    assert repo == {"default_branch": "main"}
    assert len(session.request_log) == 2


def test_rate_limit_exhaustion_raises_api_error(monkeypatch):
    monkeypatch.setattr("dotobot.retry.time.sleep", lambda _s: None)
    session = _DummySession(
        [_DummyResponse(403, {"message": "API rate limit exceeded"}) for _ in range(2)]
    )

    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session, retry=RetryConfig(attempts=2, base_sleep=0)).get_repository()
    assert excinfo.value.status == 429


def test_plain_forbidden_is_not_retried():
    session = _DummySession([_DummyResponse(403, {"message": "Resource not accessible"})])

    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session).get_repository()
    assert excinfo.value.status == 403
    assert len(session.request_log) == 1
