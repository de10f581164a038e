from __future__ import annotations

import json

import pytest

from dotobot import cli
from dotobot.issue_body import build_issue_body
from dotobot.logging import get_logger
from dotobot.models import TodoLocation

TOKEN_VARS = ("GITHUB_TOKEN", "GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GITHUB_PAT")


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (*TOKEN_VARS, "GITHUB_REPOSITORY", "GITHUB_REF", "GITHUB_WORKSPACE", "DOTOBOT_QUIET"):
        monkeypatch.delenv(name, raising=False)
    for name in ("INPUT_MODE", "INPUT_ISSUE-NUMBER", "INPUT_ISSUE_NUMBER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def patched_client(monkeypatch, fake_github):
    monkeypatch.setenv("GITHUB_TOKEN", "tkn")
    monkeypatch.setattr(cli, "build_client", lambda cfg, token: fake_github)
    return fake_github


def _tree(tmp_path):
    root = tmp_path / "tree"
    root.mkdir()
    (root / "a.py").write_text("# TODO: Fix this\nx = 1\n# todo: fix this\n")
    (root / "b.js").write_text("// TODO: other\n")
    return root


def test_list_json(tmp_path, capsys):
    root = _tree(tmp_path)

    rc = cli.main(["list", "--root", str(root), "--json"])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert [entry["key"] for entry in payload] == ["fix this", "other"]
    assert payload[0]["description"] == "Fix this"
    assert payload[0]["locations"] == [{"file": "a.py", "line": 1}, {"file": "a.py", "line": 3}]


def test_list_text(tmp_path, capsys):
    rc = cli.main(["--quiet", "list", "--root", str(_tree(tmp_path))])

    out = capsys.readouterr().out
    assert rc == 0
    assert "Fix this (2)" in out
    assert "  b.js:1" in out


def test_scan_without_token_is_config_failure(tmp_path, capsys):
    rc = cli.main(["scan", "--repo", "acme/widgets", "--root", str(_tree(tmp_path))])

    assert rc == 2
    assert "GITHUB_TOKEN" in capsys.readouterr().err


def test_missing_explicit_config_file(capsys):
    rc = cli.main(["scan", "--config", "nope.yaml"])

    assert rc == 2
    assert "[config]" in capsys.readouterr().err


def test_scan_prints_totals(tmp_path, capsys, patched_client):
    rc = cli.main(["scan", "--repo", "acme/widgets", "--root", str(_tree(tmp_path))])

    assert rc == 0
    assert "[scan] created=2 updated=0 closed=0 unchanged=0" in capsys.readouterr().out
    assert len(patched_client.issues) == 2


def test_scan_dry_run(tmp_path, capsys, patched_client):
    rc = cli.main(["scan", "--repo", "acme/widgets", "--root", str(_tree(tmp_path)), "--dry-run"])

    assert rc == 0
    assert "(dry-run)" in capsys.readouterr().out
    assert patched_client.calls == []


def test_resolve_requires_issue_number(capsys, patched_client):
    rc = cli.main(["resolve", "--repo", "acme/widgets"])

    assert rc == 2
    assert "issue-number" in capsys.readouterr().err


def test_runtime_failure_exit_code(tmp_path, capsys, patched_client, monkeypatch):
    def boom(*_args, **_kwargs):
        raise RuntimeError("Connection reset by peer")

    monkeypatch.setattr(cli, "run_scan", boom)

    rc = cli.main(["scan", "--repo", "acme/widgets", "--root", str(tmp_path)])

    assert rc == 1
    assert "[scan] failed (network)" in capsys.readouterr().err


def test_action_resolve_mode(monkeypatch, capsys, patched_client):
    patched_client.add_file("a.py", "# TODO: x\nkeep\n")
    body = build_issue_body("x", [TodoLocation("a.py", 1, "# TODO: x")], "https://github.com/acme/widgets", "main")
    number = patched_client.add_issue("TODO: x", body, state="closed")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")
    monkeypatch.setenv("INPUT_MODE", "resolve")
    monkeypatch.setenv("INPUT_ISSUE-NUMBER", str(number))

    rc = cli.main(["action"])

    assert rc == 0
    assert f"[resolve] #{number}: resolved" in capsys.readouterr().out
    assert patched_client.pulls[0]["body"].rstrip().endswith(f"Closes #{number}")


def test_action_scan_mode_uses_workspace(tmp_path, monkeypatch, capsys, patched_client):
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")
    monkeypatch.setenv("GITHUB_WORKSPACE", str(_tree(tmp_path)))
    monkeypatch.setenv("GITHUB_REF", "refs/heads/main")

    rc = cli.main(["action"])

    assert rc == 0
    assert "created=2" in capsys.readouterr().out


def test_action_unknown_mode(monkeypatch, capsys):
    monkeypatch.setenv("INPUT_MODE", "explode")

    rc = cli.main(["action"])

    assert rc == 2
    assert "Unknown mode" in capsys.readouterr().err


def test_action_non_numeric_issue(monkeypatch, capsys, patched_client):
    monkeypatch.setenv("INPUT_MODE", "resolve")
    monkeypatch.setenv("INPUT_ISSUE_NUMBER", "abc")

    assert cli.main(["action"]) == 2


def test_list_json_keeps_warnings_off_stdout(tmp_path, capsys, monkeypatch):
    root = _tree(tmp_path)
    real_scan = cli.scan

    def scan_with_warning(path, ignore_dirs=None):
        get_logger().warning("Failed to read file locked.py: Permission denied")
        return real_scan(path, ignore_dirs)

    monkeypatch.setattr(cli, "scan", scan_with_warning)

    rc = cli.main(["list", "--root", str(root), "--json"])

    captured = capsys.readouterr()
    assert rc == 0
    assert len(json.loads(captured.out)) == 2
    assert "Failed to read file locked.py" in captured.err
