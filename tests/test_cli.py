import json
from pathlib import Path

import pytest
import requests
from typer.testing import CliRunner

import trackboard.cli as cli_module
from trackboard.cli import app

runner = CliRunner()


@pytest.fixture()
def board_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TRACKBOARD_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TRACKBOARD_SQLITE_PATH", str(tmp_path / "data" / "board.sqlite"))
    monkeypatch.setenv("TRACKBOARD_LOG_LEVEL", "CRITICAL")
    monkeypatch.delenv("TRACKBOARD_BACKEND", raising=False)
    monkeypatch.delenv("TRACKBOARD_SEED_FILE", raising=False)
    return tmp_path / "data" / "board.sqlite"


def test_init_provisions_sqlite_store(board_env: Path):
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"projectKey": "KAN", "ticketCounter": "100"}
    assert board_env.exists()


def test_call_persists_between_invocations(board_env: Path):
    first = runner.invoke(app, ["call", "createTicket", "--data", '{"title": "Fix bug"}'])
    second = runner.invoke(app, ["call", "createTicket", "--data", '{"title": "Next"}'])

    assert first.exit_code == 0
    assert json.loads(first.stdout)["data"]["id"] == "KAN-101"
    assert json.loads(second.stdout)["data"]["id"] == "KAN-102"

    shown = runner.invoke(app, ["show"])
    assert [t["title"] for t in json.loads(shown.stdout)["tickets"]] == ["Fix bug", "Next"]


def test_call_error_exits_non_zero(board_env: Path):
    result = runner.invoke(app, ["call", "nope"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["status"] == "error"


def test_call_rejects_non_object_data(board_env: Path):
    result = runner.invoke(app, ["call", "createTicket", "--data", "[1, 2]"])

    assert result.exit_code != 0


def test_call_remote_posts_to_api(monkeypatch: pytest.MonkeyPatch):
    captured: dict = {}

    class _Response:
        def raise_for_status(self) -> None:
            return None

        def json(self) -> dict:
            return {"status": "success", "data": {"success": True}}

    def _fake_post(url: str, json: dict, timeout: int) -> _Response:
        captured.update({"url": url, "json": json, "timeout": timeout})
        return _Response()

    monkeypatch.setattr(cli_module.requests, "post", _fake_post)

    result = runner.invoke(
        app,
        ["call", "reorderColumns", "--data", '{"newOrderIds": ["done"]}', "--url", "http://board/"],
    )

    assert result.exit_code == 0
    assert captured["url"] == "http://board/api"
    assert captured["json"] == {"action": "reorderColumns", "data": {"newOrderIds": ["done"]}}


def test_call_remote_connection_error(monkeypatch: pytest.MonkeyPatch):
    def _fail(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(cli_module.requests, "post", _fail)

    result = runner.invoke(app, ["call", "loadInitialData", "--url", "http://board"])

    assert result.exit_code == 2


def test_serve_command_prints_uvicorn_line():
    result = runner.invoke(app, ["serve-command"])

    assert result.exit_code == 0
    assert "uvicorn trackboard.server.app:app" in result.stdout
