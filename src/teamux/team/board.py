"""File-backed task board: one JSON document per task."""

from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator

from .models import Malformed, Missing, Ok, TaskCounts, TaskRecord, TaskSpec, TaskStatus
from .store import TeamPaths, read_document, write_document

logger = logging.getLogger(__name__)

# Statuses a task may be (re)assigned from. Completed work is never reopened.
ASSIGNABLE_STATUSES: frozenset[str] = frozenset({"pending", "in_progress", "failed"})


class TaskBoardError(RuntimeError):
    """Base class for task board errors."""


class TaskNotFoundError(TaskBoardError):
    """Raised when a task file is missing or unreadable."""


class TaskStateError(TaskBoardError):
    """Raised when a status transition is not allowed."""


class TaskBoard:
    """Reads and updates task records under ``<team>/tasks``.

    Every update holds an exclusive lock on ``<id>.json.lock`` for the whole
    read-modify-write and lands through an atomic rename, so two assigners can
    no longer overwrite each other's change.
    """

    def __init__(self, paths: TeamPaths, *, clock: Callable[[], datetime] | None = None) -> None:
        self._paths = paths
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def paths(self) -> TeamPaths:
        return self._paths

    def create_tasks(self, specs: Iterable[TaskSpec]) -> list[TaskRecord]:
        self._paths.tasks_dir.mkdir(parents=True, exist_ok=True)
        records: list[TaskRecord] = []
        for index, spec in enumerate(specs):
            record = TaskRecord(
                id=str(index + 1),
                subject=spec.subject,
                description=spec.description,
                status="pending",
                owner=None,
                result=None,
                created_at=self._clock(),
            )
            write_document(self._paths.task(record.id), record)
            records.append(record)
        return records

    def read_task(self, task_id: str):
        return read_document(self._paths.task(task_id), TaskRecord)

    def task_ids(self) -> list[str]:
        if not self._paths.tasks_dir.is_dir():
            return []
        ids = [path.stem for path in self._paths.tasks_dir.glob("*.json")]
        return sorted(ids, key=lambda value: (0, int(value), "") if value.isdigit() else (1, 0, value))

    def list_tasks(self) -> list[TaskRecord]:
        records: list[TaskRecord] = []
        for task_id in self.task_ids():
            result = self.read_task(task_id)
            if isinstance(result, Ok):
                records.append(result.value)
        return records

    def count_tasks(self) -> TaskCounts:
        """Recount every task file; nothing is cached between calls."""

        counts = TaskCounts()
        for task_id in self.task_ids():
            result = self.read_task(task_id)
            if isinstance(result, Ok):
                counts.add(result.value.status)
            elif isinstance(result, Malformed):
                counts.malformed += 1
                logger.warning(
                    "Unreadable task file",
                    extra={"path": str(result.path), "error": result.error},
                )
        return counts

    @contextmanager
    def _locked(self, task_id: str) -> Iterator[None]:
        lock_path = self._paths.task_lock(task_id)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with lock_path.open("a", encoding="utf-8") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def _update(self, task_id: str, allowed: frozenset[str], mutate: Callable[[TaskRecord], None]) -> TaskRecord:
        with self._locked(task_id):
            result = self.read_task(task_id)
            if isinstance(result, Missing):
                raise TaskNotFoundError(f"Task '{task_id}' not found at {result.path}")
            if isinstance(result, Malformed):
                raise TaskNotFoundError(f"Task '{task_id}' is unreadable: {result.error}")
            record = result.value
            if record.status not in allowed:
                raise TaskStateError(
                    f"Task '{task_id}' cannot move from '{record.status}' "
                    f"(allowed from: {', '.join(sorted(allowed))})"
                )
            mutate(record)
            write_document(self._paths.task(task_id), record)
            return record

    def assign(self, task_id: str, worker_name: str) -> TaskRecord:
        def _mutate(record: TaskRecord) -> None:
            record.owner = worker_name
            record.status = "in_progress"
            record.assigned_at = self._clock()
            record.completed_at = None

        return self._update(task_id, ASSIGNABLE_STATUSES, _mutate)

    def _finish(self, task_id: str, status: TaskStatus, result: str | None) -> TaskRecord:
        def _mutate(record: TaskRecord) -> None:
            record.status = status
            record.result = result
            record.completed_at = self._clock()

        return self._update(task_id, frozenset({"in_progress"}), _mutate)

    def complete(self, task_id: str, result: str | None = None) -> TaskRecord:
        return self._finish(task_id, "completed", result)

    def fail(self, task_id: str, result: str | None = None) -> TaskRecord:
        return self._finish(task_id, "failed", result)


__all__ = [
    "ASSIGNABLE_STATUSES",
    "TaskBoard",
    "TaskBoardError",
    "TaskNotFoundError",
    "TaskStateError",
]
