from __future__ import annotations

import asyncio
import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from teamux.server import configure_logging, create_server
from teamux.team import TaskSpec, TeamConfig, start_team
from teamux.tmux import FakeTmuxClient


class StubFastMCP:
    def __init__(self, *args, **kwargs):
        self.name = kwargs.get("name")
        self.tools: dict[str, object] = {}

    def resource(self, *args, **kwargs):
        def decorator(fn):
            name = kwargs.get("name") or (args[0] if args else fn.__name__)
            setattr(self, name, fn)
            return fn

        return decorator

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs.get("name", fn.__name__)] = fn
            return fn

        return decorator

    def run(self):  # pragma: no cover - not used in tests
        return None


@pytest.fixture(autouse=True)
def stub_fastmcp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("teamux.server.FastMCP", StubFastMCP)


def read_status(server) -> dict:
    return json.loads(asyncio.run(server.teamux_status(SimpleNamespace(request_id="req-1"))))


def test_create_server_reports_tmux(make_context) -> None:
    ctx = make_context()

    server = create_server(ctx.settings, team_context=ctx)

    assert server.name == "Teamux MCP"
    assert server.tmux_metadata == {"available": True, "version": "tmux 3.4", "error": None}
    assert set(server.tools) >= {"start_team", "monitor_team", "shutdown_team"}
    payload = read_status(server)
    assert payload["tmux"]["available"] is True
    assert payload["request_id"] == "req-1"
    assert "x" in payload["agents"]["ids"]
    assert payload["teams"] == []


def test_create_server_without_tmux(make_context) -> None:
    ctx = make_context(tmux=FakeTmuxClient(failing={"-V"}))

    server = create_server(ctx.settings, team_context=ctx)

    assert server.team_context is None
    assert server.tmux_metadata["available"] is False
    assert "not usable" in server.tmux_metadata["error"]
    assert read_status(server)["tmux"]["available"] is False


def test_status_resource_lists_teams(make_context, project_dir: Path) -> None:
    ctx = make_context()
    server = create_server(ctx.settings, team_context=ctx)
    config = TeamConfig(
        team_name="beta",
        worker_count=1,
        agent_types=["x"],
        tasks=[TaskSpec(subject="Only task")],
        cwd=str(project_dir),
    )
    server.teams_state["beta"] = asyncio.run(start_team(ctx, config))

    teams = read_status(server)["teams"]

    assert teams[0]["team_name"] == "beta"
    assert teams[0]["phase"] == "planning"
    assert teams[0]["task_counts"]["pending"] == 1
    assert teams[0]["not_ready_workers"] == ["worker-1"]
    assert teams[0]["ready_workers"] == []
    assert teams[0]["dead_workers"] == []


def test_configure_logging_accepts_level(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr("teamux.server.logging.basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("DEBUG")

    assert calls[0]["level"] == 10
