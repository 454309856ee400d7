"""Team lifecycle: start, monitor, assign, shut down and resume a worker team.

Orchestrator and workers share nothing but files under the team state
directory and short keystroke triggers. Every wait is a fixed-interval poll
with a deadline, so no operation here blocks indefinitely.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from ..agents import AgentRegistry
from ..config import TeamuxSettings, get_settings
from ..tmux import (
    InvalidNameError,
    SessionController,
    TmuxClient,
    TmuxError,
    WorkerLauncher,
    WorkerPaneConfig,
)
from .board import TaskBoard
from .bootstrap import (
    append_task_assignment,
    compose_initial_inbox,
    ensure_worker_state_dir,
    render_worker_overlay,
    write_worker_overlay,
)
from .health import HealthMonitor, derive_phase
from .models import (
    Malformed,
    Missing,
    Ok,
    ShutdownReport,
    ShutdownRequest,
    TaskRecord,
    TeamConfig,
    TeamRuntime,
    TeamSnapshot,
    worker_name,
)
from .store import TeamPaths, read_document, write_document

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TeamContext:
    """Collaborators shared by every lifecycle operation, built once and passed in."""

    settings: TeamuxSettings
    tmux: TmuxClient
    agents: AgentRegistry
    clock: Callable[[], datetime] = _utc_now
    launcher: WorkerLauncher = field(init=False)
    sessions: SessionController = field(init=False)
    health: HealthMonitor = field(init=False)

    def __post_init__(self) -> None:
        self.launcher = WorkerLauncher(self.tmux, self.settings)
        self.sessions = SessionController(self.tmux, self.launcher, prefix=self.settings.session_prefix)
        self.health = HealthMonitor(
            self.launcher, stall_threshold=self.settings.stall_threshold, clock=self.clock
        )

    @classmethod
    def create(
        cls,
        settings: TeamuxSettings | None = None,
        *,
        tmux: TmuxClient | None = None,
        agents: AgentRegistry | None = None,
    ) -> "TeamContext":
        """Resolve tmux and the agent registry; raises ``TmuxNotFoundError`` without tmux."""

        settings = settings or get_settings()
        if tmux is None:
            tmux = TmuxClient(
                Path(settings.tmux_path) if settings.tmux_path else None,
                timeout=settings.command_timeout,
            )
        if agents is None:
            agents = AgentRegistry(settings.agent_profile_paths)
        return cls(settings=settings, tmux=tmux, agents=agents)

    def paths(self, team_name: str, cwd: Path | str) -> TeamPaths:
        return TeamPaths(self.settings.team_root(cwd, team_name))

    def board(self, team_name: str, cwd: Path | str) -> TaskBoard:
        return TaskBoard(self.paths(team_name, cwd), clock=self.clock)


async def start_team(ctx: TeamContext, config: TeamConfig) -> TeamRuntime:
    """Create state, session and workers for ``config``; no rollback on later failures.

    Workers that miss the ready deadline are logged and listed in
    ``TeamRuntime.not_ready_workers``; the team is returned regardless.
    """

    team_name = config.team_name
    cwd = config.cwd
    default_agent = ctx.settings.default_agent_type
    agent_types = [config.agent_type_for(index, default_agent) for index in range(config.worker_count)]

    ctx.sessions.session_name(team_name)  # raises InvalidNameError
    await ctx.tmux.ensure_available()
    for agent_type in dict.fromkeys(agent_types):
        ctx.agents.validate_available(agent_type)

    paths = ctx.paths(team_name, cwd)
    paths.tasks_dir.mkdir(parents=True, exist_ok=True)
    paths.mailbox_dir.mkdir(parents=True, exist_ok=True)

    write_document(paths.config, config)
    records = TaskBoard(paths, clock=ctx.clock).create_tasks(config.tasks)

    worker_names = [worker_name(index) for index in range(config.worker_count)]
    for name, agent_type in zip(worker_names, agent_types):
        ensure_worker_state_dir(paths, name)
        overlay = render_worker_overlay(
            paths,
            team_name=team_name,
            worker_name=name,
            agent_type=agent_type,
            tasks=records,
            cwd=cwd,
        )
        write_worker_overlay(paths, overlay, name)
        compose_initial_inbox(paths, team_name=team_name, worker_name=name, cwd=cwd)

    session = await ctx.sessions.create_team_session(team_name, config.worker_count, cwd)

    for name, agent_type, pane_id in zip(worker_names, agent_types, session.worker_pane_ids):
        pane_config = WorkerPaneConfig(
            team_name=team_name,
            worker_name=name,
            launch_cmd=ctx.agents.build_worker_command(agent_type),
            cwd=cwd,
            env_vars=ctx.agents.worker_env(
                agent_type,
                team_name=team_name,
                worker_name=name,
                state_dir=paths.worker_dir(name),
            ),
        )
        await ctx.launcher.spawn_worker_in_pane(session.session_name, pane_id, pane_config)

    ready = await asyncio.gather(
        *(
            ctx.launcher.wait_for_worker_ready(team_name, name, cwd, ctx.settings.ready_timeout)
            for name in worker_names
        )
    )
    not_ready = [name for name, is_ready in zip(worker_names, ready) if not is_ready]
    if not_ready:
        logger.warning(
            "Workers not ready before deadline",
            extra={"team": team_name, "workers": not_ready, "timeout": ctx.settings.ready_timeout},
        )

    logger.info(
        "Team started",
        extra={"team": team_name, "session": session.session_name, "workers": worker_names},
    )
    return TeamRuntime(
        team_name=team_name,
        session_name=session.session_name,
        config=config,
        worker_names=worker_names,
        worker_pane_ids=list(session.worker_pane_ids),
        cwd=cwd,
        not_ready_workers=not_ready,
    )


async def monitor_team(
    ctx: TeamContext,
    team_name: str,
    cwd: Path | str,
    worker_pane_ids: Sequence[str],
) -> TeamSnapshot:
    """Snapshot task counts, worker health and the derived phase."""

    paths = ctx.paths(team_name, cwd)
    counts = TaskBoard(paths, clock=ctx.clock).count_tasks()
    workers = await ctx.health.check_workers(paths, worker_pane_ids)
    return TeamSnapshot(
        team_name=team_name,
        phase=derive_phase(counts),
        workers=workers,
        task_counts=counts,
        dead_workers=[status.worker_name for status in workers if not status.alive],
    )


async def assign_task(
    ctx: TeamContext,
    team_name: str,
    task_id: str,
    target_worker: str,
    pane_id: str,
    session_name: str,
    cwd: Path | str,
) -> TaskRecord:
    """Give ``task_id`` to ``target_worker``: task file, inbox entry, then a trigger.

    The task file is authoritative; a trigger that fails to reach the pane is
    only logged, since the worker will still find the inbox entry.
    """

    paths = ctx.paths(team_name, cwd)
    record = TaskBoard(paths, clock=ctx.clock).assign(task_id, target_worker)
    append_task_assignment(paths, worker_name=target_worker, task_id=task_id, cwd=cwd)
    delivered = await ctx.launcher.send_to_worker(session_name, pane_id, f"new-task:{task_id}")
    logger.info(
        "Assigned task",
        extra={"team": team_name, "task_id": task_id, "worker": target_worker, "triggered": delivered},
    )
    return record


async def shutdown_team(
    ctx: TeamContext,
    team_name: str,
    session_name: str,
    cwd: Path | str,
    timeout: float | None = None,
) -> ShutdownReport:
    """Ask workers to stop, wait up to ``timeout`` for acks, then kill and clean up."""

    timeout = ctx.settings.shutdown_timeout if timeout is None else timeout
    interval = ctx.settings.poll_interval
    deadline = time.monotonic() + timeout
    report = ShutdownReport()

    try:
        paths = ctx.paths(team_name, cwd)
    except InvalidNameError as exc:
        logger.warning("Team name has no state directory", extra={"team": team_name, "error": str(exc)})
        report.session_killed = await ctx.sessions.kill_team_session(session_name)
        return report

    try:
        write_document(
            paths.shutdown_request,
            ShutdownRequest(requested_at=ctx.clock(), team_name=team_name),
        )
    except OSError as exc:
        logger.warning("Could not write shutdown request", extra={"team": team_name, "error": str(exc)})

    config_result = read_document(paths.config, TeamConfig)
    if isinstance(config_result, Ok):
        pending = [worker_name(index) for index in range(config_result.value.worker_count)]
    else:
        pending = []
        logger.warning(
            "No team config; not waiting for shutdown acks",
            extra={"team": team_name, "path": str(paths.config)},
        )

    while pending:
        for name in list(pending):
            if paths.shutdown_ack(name).exists():
                pending.remove(name)
                report.acked.append(name)
        if not pending:
            break
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(interval, remaining))

    report.abandoned = pending
    if pending:
        logger.warning(
            "Workers did not acknowledge shutdown",
            extra={"team": team_name, "workers": pending, "timeout": timeout},
        )

    report.session_killed = await ctx.sessions.kill_team_session(session_name)

    try:
        shutil.rmtree(paths.root)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove team state", extra={"team": team_name, "error": str(exc)})
    report.state_removed = not paths.root.exists()

    logger.info(
        "Team shut down",
        extra={"team": team_name, "acked": report.acked, "abandoned": report.abandoned},
    )
    return report


async def resume_team(ctx: TeamContext, team_name: str, cwd: Path | str) -> TeamRuntime | None:
    """Reattach to a live team, or None when its config or session is gone.

    Worker names are rebuilt from pane creation order, not from stored identity.
    """

    paths = ctx.paths(team_name, cwd)
    result = read_document(paths.config, TeamConfig)
    if isinstance(result, Missing):
        return None
    if isinstance(result, Malformed):
        logger.warning("Team config unreadable", extra={"team": team_name, "error": result.error})
        return None
    config = result.value

    session_name = ctx.sessions.session_name(team_name)
    if not await ctx.sessions.has_session(session_name):
        return None

    try:
        panes = await ctx.sessions.list_panes(session_name)
    except TmuxError as exc:
        logger.warning("Could not list panes", extra={"session": session_name, "error": str(exc)})
        return None

    worker_pane_ids = panes[1:]
    if len(worker_pane_ids) != config.worker_count:
        logger.warning(
            "Live worker panes do not match team config",
            extra={"team": team_name, "panes": len(worker_pane_ids), "configured": config.worker_count},
        )

    return TeamRuntime(
        team_name=team_name,
        session_name=session_name,
        config=config,
        worker_names=[worker_name(index) for index in range(len(worker_pane_ids))],
        worker_pane_ids=worker_pane_ids,
        cwd=str(cwd),
    )


async def respawn_worker(ctx: TeamContext, runtime: TeamRuntime, target_worker: str) -> str:
    """Relaunch ``target_worker`` in a fresh pane and record the new pane id on ``runtime``."""

    index = runtime.worker_names.index(target_worker)
    agent_type = runtime.config.agent_type_for(index, ctx.settings.default_agent_type)
    paths = ctx.paths(runtime.team_name, runtime.cwd)
    pane_config = WorkerPaneConfig(
        team_name=runtime.team_name,
        worker_name=target_worker,
        launch_cmd=ctx.agents.build_worker_command(agent_type),
        cwd=runtime.cwd,
        env_vars=ctx.agents.worker_env(
            agent_type,
            team_name=runtime.team_name,
            worker_name=target_worker,
            state_dir=paths.worker_dir(target_worker),
        ),
    )
    pane_id = await ctx.sessions.respawn_worker_in_pane(runtime.session_name, pane_config)
    runtime.worker_pane_ids[index] = pane_id
    return pane_id


__all__ = [
    "TeamContext",
    "assign_task",
    "monitor_team",
    "respawn_worker",
    "resume_team",
    "shutdown_team",
    "start_team",
]
