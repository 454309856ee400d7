"""FastMCP server bootstrap for Teamux."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .agents import AgentLoadError, AgentRegistry
from .config import TeamuxSettings, get_settings
from .team import TeamContext, monitor_team
from .tmux import TmuxNotFoundError
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the Teamux server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _run_sync(coro):
    """Execute an async coroutine on a dedicated event loop."""

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_server(
    settings: Optional[TeamuxSettings] = None,
    team_context: TeamContext | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with team tools and a status resource."""

    settings = settings or get_settings()
    agents = team_context.agents if team_context is not None else AgentRegistry(settings.agent_profile_paths)

    tmux_metadata = {
        "available": False,
        "version": None,
        "error": None,
    }

    if team_context is None:
        try:
            team_context = TeamContext.create(settings, agents=agents)
        except TmuxNotFoundError as exc:
            tmux_metadata["error"] = str(exc)

    if team_context is not None:
        try:
            tmux_metadata["version"] = _run_sync(team_context.tmux.ensure_available())
            tmux_metadata["available"] = True
        except TmuxNotFoundError as exc:
            tmux_metadata["error"] = str(exc)
            team_context = None

    server = FastMCP(
        name="Teamux MCP",
        version=__version__,
        instructions=(
            "Teamux runs a team of CLI agent workers in tmux panes that pull work from "
            "a shared on-disk task board. Start a team, assign tasks, monitor worker "
            "health, and shut the team down when the board is complete."
        ),
    )

    handles = register_tools(
        server,
        settings=settings,
        agents=agents,
        team_context=team_context,
    )
    teams_state = handles.teams_state

    @server.resource(
        "resource://teamux/status",
        name="teamux_status",
        title="Teamux Status",
        description="Provides the current runtime status for the Teamux MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource(context: Context) -> str:
        """Return a JSON string summarizing tmux availability and every known team."""

        try:
            agent_ids = sorted(agents.load_all().keys())
            agent_error: str | None = None
        except AgentLoadError as exc:
            agent_ids = []
            agent_error = str(exc)

        teams = []
        for team_name, runtime in list(teams_state.items()):
            entry = {
                "team_name": team_name,
                "session_name": runtime.session_name,
                "workers": list(runtime.worker_names),
                "ready_workers": runtime.ready_workers,
                "not_ready_workers": list(runtime.not_ready_workers),
            }
            if team_context is not None:
                snapshot = await monitor_team(
                    team_context, team_name, runtime.cwd, runtime.worker_pane_ids
                )
                entry.update(
                    {
                        "phase": snapshot.phase,
                        "task_counts": snapshot.as_dict()["task_counts"],
                        "dead_workers": snapshot.dead_workers,
                        "stalled_workers": [
                            status.worker_name for status in snapshot.workers if status.stalled
                        ],
                    }
                )
            teams.append(entry)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "agents": {
                "count": len(agent_ids),
                "ids": agent_ids,
                "error": agent_error,
            },
            "tmux": {
                "path": settings.tmux_path,
                "session_prefix": settings.session_prefix,
                **tmux_metadata,
            },
            "teams": teams,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "team_context", team_context)
    setattr(server, "tmux_metadata", tmux_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "teams_state", teams_state)
    return server


def main() -> None:
    """Entry point for running the Teamux MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Teamux MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "tmux_available": getattr(server, "tmux_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
