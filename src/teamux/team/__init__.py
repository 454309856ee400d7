"""Team state, task board and lifecycle operations."""

from .board import TaskBoard, TaskBoardError, TaskNotFoundError, TaskStateError
from .health import HealthMonitor, derive_phase
from .models import (
    HeartbeatRecord,
    Malformed,
    Missing,
    Ok,
    ShutdownReport,
    TaskCounts,
    TaskRecord,
    TaskSpec,
    TeamConfig,
    TeamRuntime,
    TeamSnapshot,
    WorkerStatus,
)
from .runtime import (
    TeamContext,
    assign_task,
    monitor_team,
    respawn_worker,
    resume_team,
    shutdown_team,
    start_team,
)
from .store import TeamPaths

__all__ = [
    "HealthMonitor",
    "HeartbeatRecord",
    "Malformed",
    "Missing",
    "Ok",
    "ShutdownReport",
    "TaskBoard",
    "TaskBoardError",
    "TaskCounts",
    "TaskNotFoundError",
    "TaskRecord",
    "TaskSpec",
    "TaskStateError",
    "TeamConfig",
    "TeamContext",
    "TeamPaths",
    "TeamRuntime",
    "TeamSnapshot",
    "WorkerStatus",
    "assign_task",
    "derive_phase",
    "monitor_team",
    "respawn_worker",
    "resume_team",
    "shutdown_team",
    "start_team",
]
