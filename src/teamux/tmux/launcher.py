"""Worker process launch and signalling inside tmux panes."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path

from ..config import TeamuxSettings
from .client import TmuxClient, TmuxError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerPaneConfig:
    """Everything needed to start one worker process in a pane."""

    team_name: str
    worker_name: str
    launch_cmd: str
    cwd: str
    env_vars: dict[str, str] = field(default_factory=dict)


class WorkerLauncher:
    """Start workers in panes, nudge them with keystrokes and watch their sentinels."""

    def __init__(
        self,
        tmux: TmuxClient,
        settings: TeamuxSettings,
        *,
        shell: str | None = None,
        home: str | None = None,
    ) -> None:
        self._tmux = tmux
        self._settings = settings
        self._shell = shell
        self._home = home

    def ready_sentinel(self, team_name: str, worker_name: str, cwd: Path | str) -> Path:
        return self._settings.team_root(cwd, team_name) / "workers" / worker_name / ".ready"

    def build_start_command(self, config: WorkerPaneConfig) -> str:
        """Return ``env K=V ... <shell> -c '<source rc>; exec <launch_cmd>'``."""

        shell = self._shell or os.environ.get("SHELL") or "/bin/bash"
        shell_name = Path(shell).name or "bash"
        home = self._home if self._home is not None else os.environ.get("HOME", "")
        source_cmd = ""
        if home:
            rc_file = shlex.quote(f"{home}/.{shell_name}rc")
            source_cmd = f"[ -f {rc_file} ] && source {rc_file}; "

        parts = ["env"]
        parts.extend(f"{key}={shlex.quote(value)}" for key, value in config.env_vars.items())
        parts.append(shlex.quote(shell))
        parts.extend(["-c", shlex.quote(f"{source_cmd}exec {config.launch_cmd}")])
        return " ".join(parts)

    async def spawn_worker_in_pane(self, session_name: str, pane_id: str, config: WorkerPaneConfig) -> None:
        """Type the start command into ``pane_id`` and press Enter.

        The command is sent with ``-l`` so tmux does not read words like ``Enter``
        or ``C-c`` inside it as key names; Enter goes in a separate call.
        """

        start_cmd = self.build_start_command(config)
        await self._tmux.run("send-keys", "-t", pane_id, "-l", start_cmd)
        await self._tmux.run("send-keys", "-t", pane_id, "Enter")
        logger.info(
            "Spawned worker",
            extra={"session": session_name, "pane": pane_id, "worker": config.worker_name},
        )

    async def send_to_worker(self, session_name: str, pane_id: str, message: str) -> bool:
        """Send a short trigger line to a worker. Returns False instead of raising."""

        limit = self._settings.trigger_max_length
        if len(message) > limit:
            logger.warning(
                "Trigger message truncated",
                extra={"pane": pane_id, "length": len(message), "limit": limit},
            )
            message = message[:limit]
        try:
            await self._tmux.run("send-keys", "-t", pane_id, "-l", message)
            await self._tmux.run("send-keys", "-t", pane_id, "Enter")
        except TmuxError as exc:
            logger.debug(
                "Trigger not delivered",
                extra={"session": session_name, "pane": pane_id, "error": str(exc)},
            )
            return False
        return True

    async def wait_for_worker_ready(
        self,
        team_name: str,
        worker_name: str,
        cwd: Path | str,
        timeout: float | None = None,
    ) -> bool:
        """Poll for the worker's ``.ready`` sentinel until ``timeout`` seconds pass."""

        sentinel = self.ready_sentinel(team_name, worker_name, cwd)
        timeout = self._settings.ready_timeout if timeout is None else timeout
        interval = self._settings.poll_interval
        deadline = time.monotonic() + timeout

        while True:
            if sentinel.exists():
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(interval, remaining))

    async def is_worker_alive(self, pane_id: str) -> bool:
        """Return True only when tmux reports the pane's process still running."""

        try:
            result = await self._tmux.run("display-message", "-t", pane_id, "-p", "#{pane_dead}")
        except TmuxError:
            return False
        return result.stdout.strip() == "0"


__all__ = ["WorkerLauncher", "WorkerPaneConfig"]
