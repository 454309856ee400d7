"""Data models for team state.

Documents persisted to disk are pydantic models written with camelCase keys,
because workers written in any language read and write the same files. Values
that only live inside the orchestrator are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..names import require_clean_name

TaskStatus = Literal["pending", "in_progress", "completed", "failed"]
TeamPhase = Literal["planning", "executing", "fixing", "completed"]

T = TypeVar("T")


class Document(BaseModel):
    """Base for JSON documents shared with worker processes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskSpec(Document):
    subject: str
    description: str = ""


class TeamConfig(Document):
    """Team definition; persisted once at start and read back verbatim on resume."""

    team_name: str
    worker_count: int = Field(ge=0)
    agent_types: list[str] = Field(default_factory=list)
    tasks: list[TaskSpec] = Field(default_factory=list)
    cwd: str

    @field_validator("team_name")
    @classmethod
    def _normalize_team_name(cls, value: str) -> str:
        return require_clean_name(value.strip())

    def agent_type_for(self, index: int, default: str) -> str:
        """Agent type of worker ``index`` (0-based); short lists fall back to the first entry."""

        if index < len(self.agent_types):
            return self.agent_types[index]
        if self.agent_types:
            return self.agent_types[0]
        return default


class TaskRecord(Document):
    """One task file. Keys added by workers are kept when the record is rewritten."""

    model_config = ConfigDict(extra="allow")

    id: str
    subject: str
    description: str = ""
    status: TaskStatus = "pending"
    owner: str | None = None
    result: str | None = None
    created_at: datetime
    assigned_at: datetime | None = None
    completed_at: datetime | None = None


class HeartbeatRecord(Document):
    """Liveness marker overwritten periodically by a worker."""

    model_config = ConfigDict(extra="allow")

    updated_at: datetime
    current_task_id: str | None = None

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("current_task_id", mode="before")
    @classmethod
    def _coerce_task_id(cls, value: Any):  # type: ignore[override]
        if value is None or value == "":
            return None
        return str(value)


class ShutdownRequest(Document):
    requested_at: datetime
    team_name: str


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Missing:
    path: Path


@dataclass(frozen=True)
class Malformed:
    path: Path
    error: str


ReadResult = Union[Ok[T], Missing, Malformed]


@dataclass(slots=True)
class WorkerHandle:
    name: str
    pane_id: str
    agent_type: str


@dataclass(slots=True)
class WorkerStatus:
    worker_name: str
    pane_id: str
    alive: bool
    stalled: bool
    current_task_id: str | None = None
    last_heartbeat: datetime | None = None


@dataclass(slots=True)
class TaskCounts:
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    malformed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.in_progress + self.completed + self.failed

    def add(self, status: str) -> None:
        if status == "pending":
            self.pending += 1
        elif status == "in_progress":
            self.in_progress += 1
        elif status == "completed":
            self.completed += 1
        elif status == "failed":
            self.failed += 1
        else:
            self.malformed += 1


@dataclass(slots=True)
class TeamSnapshot:
    team_name: str
    phase: TeamPhase
    workers: list[WorkerStatus]
    task_counts: TaskCounts
    dead_workers: list[str]

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for worker in payload["workers"]:
            if worker["last_heartbeat"] is not None:
                worker["last_heartbeat"] = worker["last_heartbeat"].isoformat()
        return payload


@dataclass(slots=True)
class TeamRuntime:
    team_name: str
    session_name: str
    config: TeamConfig
    worker_names: list[str]
    worker_pane_ids: list[str]
    cwd: str
    not_ready_workers: list[str] = field(default_factory=list)

    @property
    def workers(self) -> list[WorkerHandle]:
        default = self.config.agent_types[0] if self.config.agent_types else ""
        return [
            WorkerHandle(name=name, pane_id=pane_id, agent_type=self.config.agent_type_for(index, default))
            for index, (name, pane_id) in enumerate(zip(self.worker_names, self.worker_pane_ids))
        ]

    @property
    def ready_workers(self) -> list[str]:
        return [name for name in self.worker_names if name not in self.not_ready_workers]

    def pane_for(self, worker_name: str) -> str:
        try:
            return self.worker_pane_ids[self.worker_names.index(worker_name)]
        except ValueError as exc:
            raise KeyError(f"Worker '{worker_name}' is not part of team '{self.team_name}'") from exc

    def as_dict(self) -> dict[str, Any]:
        return {
            "team_name": self.team_name,
            "session_name": self.session_name,
            "config": self.config.to_payload(),
            "worker_names": list(self.worker_names),
            "worker_pane_ids": list(self.worker_pane_ids),
            "workers": [asdict(handle) for handle in self.workers],
            "cwd": self.cwd,
            "ready_workers": self.ready_workers,
            "not_ready_workers": list(self.not_ready_workers),
        }


@dataclass(slots=True)
class ShutdownReport:
    acked: list[str] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)
    session_killed: bool = True
    state_removed: bool = False


def worker_name(index: int) -> str:
    """Deterministic 1-based worker name for the 0-based ``index``."""

    return f"worker-{index + 1}"


__all__ = [
    "Document",
    "HeartbeatRecord",
    "Malformed",
    "Missing",
    "Ok",
    "ReadResult",
    "ShutdownReport",
    "ShutdownRequest",
    "TaskCounts",
    "TaskRecord",
    "TaskSpec",
    "TaskStatus",
    "TeamConfig",
    "TeamPhase",
    "TeamRuntime",
    "TeamSnapshot",
    "WorkerHandle",
    "WorkerStatus",
    "worker_name",
]
