"""Team session management: one tmux session per team, one pane per worker.

Sessions are named ``{prefix}-{teamName}`` and hold a leader pane plus N worker
panes. Panes are always targeted by their tmux id (``%N``), never by index,
because ``select-layout`` reorders visual positions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..names import MAX_NAME_LENGTH, InvalidNameError, sanitize_name
from .client import TmuxClient, TmuxCommandError, TmuxError
from .launcher import WorkerLauncher, WorkerPaneConfig

logger = logging.getLogger(__name__)


def _pane_sort_key(pane_id: str) -> tuple[int, str]:
    digits = pane_id.lstrip("%")
    return (int(digits), pane_id) if digits.isdigit() else (1 << 30, pane_id)


@dataclass(slots=True)
class TeamSession:
    session_name: str
    leader_pane_id: str
    worker_pane_ids: list[str] = field(default_factory=list)


class SessionController:
    """Create, inspect and destroy the tmux session that hosts a team."""

    def __init__(self, tmux: TmuxClient, launcher: WorkerLauncher, *, prefix: str = "teamux") -> None:
        self._tmux = tmux
        self._launcher = launcher
        self._prefix = prefix

    def session_name(self, team_name: str) -> str:
        return f"{self._prefix}-{sanitize_name(team_name)}"

    async def list_panes(self, session_name: str) -> list[str]:
        """Return pane ids of ``session_name`` in creation order."""

        result = await self._tmux.run("list-panes", "-t", session_name, "-F", "#{pane_id}")
        return sorted(result.lines(), key=_pane_sort_key)

    async def has_session(self, session_name: str) -> bool:
        try:
            result = await self._tmux.run("has-session", "-t", session_name, check=False)
        except TmuxError:
            return False
        return result.ok

    async def _split(self, session_name: str, target: str, direction: str, cwd: str, known: set[str]) -> str:
        await self._tmux.run("split-window", direction, "-t", target, "-c", cwd)
        current = await self._tmux.run("list-panes", "-t", session_name, "-F", "#{pane_id}")
        new_panes = sorted((pane for pane in current.lines() if pane not in known), key=_pane_sort_key)
        if not new_panes:
            raise TmuxCommandError(f"split-window on {target} produced no new pane in {session_name}")
        return new_panes[-1]

    async def create_team_session(self, team_name: str, worker_count: int, cwd: str) -> TeamSession:
        """Create a session with a leader pane and ``worker_count`` worker panes.

        The first worker pane is split horizontally off the leader, each later one
        vertically off the previous worker. New pane ids are found by diffing the
        live pane list against the ids already known.
        """

        session_name = self.session_name(team_name)
        await self._tmux.run(
            "new-session", "-d", "-s", session_name, "-x", "220", "-y", "50", "-c", cwd
        )
        leader = await self._tmux.run("display-message", "-t", session_name, "-p", "#{pane_id}")
        leader_pane_id = leader.stdout.strip()

        session = TeamSession(session_name=session_name, leader_pane_id=leader_pane_id)
        known = {leader_pane_id}
        for index in range(worker_count):
            target = leader_pane_id if index == 0 else session.worker_pane_ids[-1]
            direction = "-h" if index == 0 else "-v"
            pane_id = await self._split(session_name, target, direction, cwd, known)
            known.add(pane_id)
            session.worker_pane_ids.append(pane_id)

        try:
            await self._tmux.run("select-layout", "-t", session_name, "main-vertical")
        except TmuxError as exc:
            logger.debug("Layout not applied", extra={"session": session_name, "error": str(exc)})

        logger.info(
            "Created team session",
            extra={
                "session": session_name,
                "leader_pane": leader_pane_id,
                "worker_panes": list(session.worker_pane_ids),
            },
        )
        return session

    async def kill_team_session(self, session_name: str) -> bool:
        """Kill the whole session; a session that is already gone is not an error."""

        try:
            await self._tmux.run("kill-session", "-t", session_name)
        except TmuxError as exc:
            logger.debug("Session kill skipped", extra={"session": session_name, "error": str(exc)})
            return False
        return True

    async def respawn_worker_in_pane(self, session_name: str, config: WorkerPaneConfig) -> str:
        """Split a fresh pane into ``session_name`` and relaunch a worker there."""

        known = set(await self.list_panes(session_name))
        pane_id = await self._split(session_name, session_name, "-v", config.cwd, known)
        await self._launcher.spawn_worker_in_pane(session_name, pane_id, config)
        logger.info(
            "Respawned worker",
            extra={"session": session_name, "worker": config.worker_name, "pane": pane_id},
        )
        return pane_id


__all__ = [
    "InvalidNameError",
    "MAX_NAME_LENGTH",
    "SessionController",
    "TeamSession",
    "sanitize_name",
]
