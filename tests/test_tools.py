from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from teamux.tools import register_tools


class StubTool:
    def __init__(self, fn, name, description=None):
        self.fn = fn
        self.name = name
        self.description = description


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name, kwargs.get("description"))
            self._tools[tool_name] = tool
            return tool

        return decorator


class RecordingLogger:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, message, extra=None):
        self.records.append(("info", message, extra or {}))

    def warning(self, message, extra=None):
        self.records.append(("warning", message, extra or {}))

    def debug(self, message, extra=None):
        self.records.append(("debug", message, extra or {}))


class StubContext:
    def __init__(self) -> None:
        self.logger = RecordingLogger()


@pytest.fixture
def tooling(make_context):
    ctx = make_context()
    server = StubServer()
    handles = register_tools(server, settings=ctx.settings, agents=ctx.agents, team_context=ctx)
    return server, handles, ctx


def start(handles, project_dir: Path, **kwargs) -> dict[str, Any]:
    return asyncio.run(
        handles.start_team.fn(
            "alpha",
            2,
            [{"subject": "Parse input"}, {"subject": "Write report", "description": "markdown"}],
            agent_types=["x"],
            cwd=str(project_dir),
            **kwargs,
        )
    )


def test_register_tools_exposes_team_tools(tooling) -> None:
    server, handles, _ = tooling

    assert set(server._tools) == {
        "start_team",
        "monitor_team",
        "assign_task",
        "shutdown_team",
        "resume_team",
        "list_agents",
    }
    assert handles.teams_state == {}


def test_start_team_tool_records_runtime(tooling, project_dir: Path) -> None:
    _, handles, _ = tooling
    context = StubContext()

    payload = start(handles, project_dir, context=context)

    assert payload["session_name"] == "teamux-alpha"
    assert payload["worker_names"] == ["worker-1", "worker-2"]
    assert payload["ready_workers"] == []
    assert [worker["name"] for worker in payload["workers"]] == ["worker-1", "worker-2"]
    assert payload["workers"][0]["pane_id"] == payload["worker_pane_ids"][0]
    assert payload["config"]["tasks"][1]["description"] == "markdown"
    assert "alpha" in handles.teams_state
    assert context.logger.records[-1][1] == "Started team"


def test_start_team_tool_rejects_duplicate(tooling, project_dir: Path) -> None:
    _, handles, _ = tooling
    start(handles, project_dir)

    with pytest.raises(ValueError, match="already running"):
        start(handles, project_dir)


def test_assign_and_monitor_tools(tooling, project_dir: Path) -> None:
    _, handles, ctx = tooling
    start(handles, project_dir)

    record = asyncio.run(handles.assign_task.fn("alpha", "2", "worker-2", cwd=str(project_dir)))
    snapshot = asyncio.run(handles.monitor_team.fn("alpha", cwd=str(project_dir)))

    assert record["owner"] == "worker-2"
    assert record["status"] == "in_progress"
    assert "assignedAt" in record
    assert snapshot["phase"] == "executing"
    assert snapshot["task_counts"]["in_progress"] == 1
    assert [worker["worker_name"] for worker in snapshot["workers"]] == ["worker-1", "worker-2"]


def test_assign_task_tool_unknown_worker(tooling, project_dir: Path) -> None:
    _, handles, _ = tooling
    start(handles, project_dir)

    with pytest.raises(KeyError):
        asyncio.run(handles.assign_task.fn("alpha", "1", "worker-9", cwd=str(project_dir)))


def test_tools_resume_unknown_team_lazily(tooling, project_dir: Path) -> None:
    _, handles, _ = tooling

    with pytest.raises(ValueError, match="no persisted config"):
        asyncio.run(handles.monitor_team.fn("ghost", cwd=str(project_dir)))


def test_resume_tool_reattaches_after_restart(tooling, make_context, fake_tmux, project_dir: Path) -> None:
    _, handles, _ = tooling
    start(handles, project_dir)

    fresh_ctx = make_context()
    fresh_server = StubServer()
    fresh = register_tools(fresh_server, settings=fresh_ctx.settings, agents=fresh_ctx.agents, team_context=fresh_ctx)

    payload = asyncio.run(fresh.resume_team.fn("alpha", cwd=str(project_dir)))
    missing = asyncio.run(fresh.resume_team.fn("ghost", cwd=str(project_dir)))

    assert payload is not None
    assert payload["worker_names"] == ["worker-1", "worker-2"]
    assert "alpha" in fresh.teams_state
    assert missing is None


def test_shutdown_tool_clears_state(tooling, fake_tmux, project_dir: Path) -> None:
    _, handles, _ = tooling
    start(handles, project_dir)
    context = StubContext()

    report = asyncio.run(
        handles.shutdown_team.fn("alpha", cwd=str(project_dir), timeout_seconds=0.2, context=context)
    )

    assert report["abandoned"] == ["worker-1", "worker-2"]
    assert report["session_killed"] is True
    assert report["state_removed"] is True
    assert handles.teams_state == {}
    assert fake_tmux.sessions == {}
    assert context.logger.records[-1][0] == "warning"


def test_list_agents_tool(tooling) -> None:
    _, handles, _ = tooling

    catalog = handles.list_agents.fn()

    by_id = {entry["id"]: entry for entry in catalog}
    assert by_id["claude"]["command"] == "claude --dangerously-skip-permissions"
    assert by_id["x"]["command"].endswith("x-agent --worker")


def test_tools_without_tmux(make_context, project_dir: Path) -> None:
    ctx = make_context()
    server = StubServer()
    handles = register_tools(server, settings=ctx.settings, agents=ctx.agents, team_context=None)

    with pytest.raises(RuntimeError, match="tmux is unavailable"):
        start(handles, project_dir)
    assert handles.list_agents.fn()
