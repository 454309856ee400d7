"""Worker health classification and team phase derivation."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from ..tmux.launcher import WorkerLauncher
from .models import HeartbeatRecord, Malformed, Ok, TaskCounts, TeamPhase, WorkerStatus, worker_name
from .store import TeamPaths, read_document

logger = logging.getLogger(__name__)


def derive_phase(counts: TaskCounts) -> TeamPhase:
    """Phase is recomputed from counts on every snapshot and never stored.

    A retried failed task can therefore move a team from ``fixing`` back to
    ``executing``.
    """

    idle = counts.pending == 0 and counts.in_progress == 0
    if counts.pending > 0 and counts.in_progress == 0 and counts.completed == 0:
        return "planning"
    if idle and counts.failed > 0:
        return "fixing"
    if idle and counts.completed > 0:
        return "completed"
    return "executing"


def read_heartbeat(paths: TeamPaths, name: str) -> HeartbeatRecord | None:
    """Heartbeat of ``name``, or None when the worker never wrote a usable one."""

    result = read_document(paths.heartbeat(name), HeartbeatRecord)
    if isinstance(result, Ok):
        return result.value
    if isinstance(result, Malformed):
        logger.warning(
            "Ignoring malformed heartbeat",
            extra={"worker": name, "path": str(result.path), "error": result.error},
        )
    return None


def is_stalled(heartbeat: HeartbeatRecord | None, now: datetime, threshold_seconds: float) -> bool:
    """Only a worker that reported once and then went quiet counts as stalled."""

    if heartbeat is None:
        return False
    return (now - heartbeat.updated_at).total_seconds() > threshold_seconds


class HealthMonitor:
    """Combines pane liveness with heartbeat files into per-worker status."""

    def __init__(
        self,
        launcher: WorkerLauncher,
        *,
        stall_threshold: float = 60.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._launcher = launcher
        self._stall_threshold = stall_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def worker_status(self, paths: TeamPaths, name: str, pane_id: str) -> WorkerStatus:
        alive = await self._launcher.is_worker_alive(pane_id)
        heartbeat = read_heartbeat(paths, name)
        stalled = is_stalled(heartbeat, self._clock(), self._stall_threshold)
        if stalled:
            logger.warning(
                "Worker appears stalled",
                extra={"worker": name, "threshold_seconds": self._stall_threshold},
            )
        return WorkerStatus(
            worker_name=name,
            pane_id=pane_id,
            alive=alive,
            stalled=stalled,
            current_task_id=heartbeat.current_task_id if heartbeat else None,
            last_heartbeat=heartbeat.updated_at if heartbeat else None,
        )

    async def check_workers(self, paths: TeamPaths, worker_pane_ids: Sequence[str]) -> list[WorkerStatus]:
        """Status for each pane, with workers named by position (``worker-1`` first)."""

        return list(
            await asyncio.gather(
                *(
                    self.worker_status(paths, worker_name(index), pane_id)
                    for index, pane_id in enumerate(worker_pane_ids)
                )
            )
        )


__all__ = ["HealthMonitor", "derive_phase", "is_stalled", "read_heartbeat"]
