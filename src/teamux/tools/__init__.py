"""Tool registration for the Teamux MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastmcp import Context, FastMCP

from ..agents import AgentRegistry
from ..config import TeamuxSettings
from ..team import (
    TaskSpec,
    TeamConfig,
    TeamContext,
    TeamRuntime,
    assign_task,
    monitor_team,
    resume_team,
    shutdown_team,
    start_team,
)


@dataclass(slots=True)
class ToolHandles:
    start_team: Any
    monitor_team: Any
    assign_task: Any
    shutdown_team: Any
    resume_team: Any
    list_agents: Any
    teams_state: dict[str, TeamRuntime]


def register_tools(
    server: FastMCP,
    *,
    settings: TeamuxSettings,
    agents: AgentRegistry,
    team_context: TeamContext | None,
) -> ToolHandles:
    """Register Teamux's MCP tools on the server."""

    teams_state: dict[str, TeamRuntime] = {}

    def _require_context() -> TeamContext:
        if team_context is None:
            raise RuntimeError("tmux is unavailable; cannot manage teams")
        return team_context

    def _resolve_cwd(cwd: str | None) -> str:
        return str(Path(cwd).expanduser().resolve()) if cwd else str(Path.cwd())

    async def _runtime_for(team_name: str, cwd: str | None) -> TeamRuntime:
        runtime = teams_state.get(team_name)
        if runtime is not None:
            return runtime
        resumed = await resume_team(_require_context(), team_name, _resolve_cwd(cwd))
        if resumed is None:
            raise ValueError(f"Team '{team_name}' has no persisted config or live session")
        teams_state[team_name] = resumed
        return resumed

    async def _start_team(
        team_name: str,
        worker_count: int,
        tasks: list[dict[str, str]],
        *,
        agent_types: list[str] | None = None,
        cwd: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create a tmux session, launch workers and seed the task board."""

        ctx = _require_context()
        if team_name in teams_state:
            raise ValueError(f"Team '{team_name}' is already running")
        config = TeamConfig(
            team_name=team_name,
            worker_count=worker_count,
            agent_types=agent_types or [settings.default_agent_type],
            tasks=[TaskSpec.model_validate(task) for task in tasks],
            cwd=_resolve_cwd(cwd),
        )
        runtime = await start_team(ctx, config)
        teams_state[team_name] = runtime

        _emit_log(
            context,
            "info",
            "Started team",
            extra={
                "team": team_name,
                "session": runtime.session_name,
                "not_ready": runtime.not_ready_workers,
            },
        )
        return runtime.as_dict()

    async def _monitor_team(
        team_name: str,
        cwd: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return phase, task counts and per-worker health for a team."""

        runtime = await _runtime_for(team_name, cwd)
        snapshot = await monitor_team(_require_context(), team_name, runtime.cwd, runtime.worker_pane_ids)
        _emit_log(
            context,
            "debug",
            "Monitored team",
            extra={"team": team_name, "phase": snapshot.phase, "dead": snapshot.dead_workers},
        )
        return snapshot.as_dict()

    async def _assign_task(
        team_name: str,
        task_id: str,
        worker_name: str,
        cwd: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Assign a task to a worker via task file, inbox entry and pane trigger."""

        runtime = await _runtime_for(team_name, cwd)
        record = await assign_task(
            _require_context(),
            team_name,
            task_id,
            worker_name,
            runtime.pane_for(worker_name),
            runtime.session_name,
            runtime.cwd,
        )
        _emit_log(
            context,
            "info",
            "Assigned task",
            extra={"team": team_name, "task_id": task_id, "worker": worker_name},
        )
        return record.to_payload()

    async def _shutdown_team(
        team_name: str,
        cwd: str | None = None,
        timeout_seconds: float | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Request shutdown, wait for acks, kill the session and remove team state."""

        runtime = await _runtime_for(team_name, cwd)
        report = await shutdown_team(
            _require_context(),
            team_name,
            runtime.session_name,
            runtime.cwd,
            timeout=timeout_seconds,
        )
        teams_state.pop(team_name, None)
        _emit_log(
            context,
            "warning" if report.abandoned else "info",
            "Shut down team",
            extra={"team": team_name, "acked": report.acked, "abandoned": report.abandoned},
        )
        return {
            "team_name": team_name,
            "acked": report.acked,
            "abandoned": report.abandoned,
            "session_killed": report.session_killed,
            "state_removed": report.state_removed,
        }

    async def _resume_team(
        team_name: str,
        cwd: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any] | None:
        """Reattach to a team whose tmux session is still alive."""

        runtime = await resume_team(_require_context(), team_name, _resolve_cwd(cwd))
        if runtime is None:
            _emit_log(context, "info", "Nothing to resume", extra={"team": team_name})
            return None
        teams_state[team_name] = runtime
        _emit_log(
            context,
            "info",
            "Resumed team",
            extra={"team": team_name, "workers": runtime.worker_names},
        )
        return runtime.as_dict()

    def _list_agents(context: Context | None = None) -> list[dict[str, Any]]:
        """List launchable agent types."""

        catalog = [
            {
                "id": agent.id,
                "title": agent.title,
                "command": agent.launch_command(),
                "tags": agent.metadata.get("tags", []),
            }
            for agent in agents.load_all().values()
        ]
        _emit_log(context, "debug", "Listing agent types", extra={"count": len(catalog)})
        return catalog

    tool_start = server.tool(
        name="start_team",
        description=(
            "Start a team of CLI agent workers in a tmux session. Provide a team name, "
            "worker count, tasks ({subject, description}) and optional agent types per worker."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "Workers run with their CLI's permission prompts disabled",
            }
        },
    )(_start_team)

    tool_monitor = server.tool(
        name="monitor_team",
        description="Report team phase, task counts, and alive/stalled status for each worker.",
    )(_monitor_team)

    tool_assign = server.tool(
        name="assign_task",
        description="Assign a task id to a named worker and nudge the worker's pane.",
    )(_assign_task)

    tool_shutdown = server.tool(
        name="shutdown_team",
        description="Gracefully stop a team, then kill its tmux session and delete its state.",
    )(_shutdown_team)

    tool_resume = server.tool(
        name="resume_team",
        description="Reattach to a running team from its persisted config and live tmux session.",
    )(_resume_team)

    tool_list = server.tool(
        name="list_agents",
        description="List agent types that can be launched as workers.",
    )(_list_agents)

    return ToolHandles(
        start_team=tool_start,
        monitor_team=tool_monitor,
        assign_task=tool_assign,
        shutdown_team=tool_shutdown,
        resume_team=tool_resume,
        list_agents=tool_list,
        teams_state=teams_state,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
