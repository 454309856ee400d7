"""On-disk layout and JSON file helpers for team state."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .models import Document, Malformed, Missing, Ok, ReadResult

M = TypeVar("M", bound=BaseModel)


@dataclass(slots=True, frozen=True)
class TeamPaths:
    """Every path a team uses, rooted at ``<cwd>/<state_dir>/<team>``."""

    root: Path

    @property
    def config(self) -> Path:
        return self.root / "config.json"

    @property
    def tasks_dir(self) -> Path:
        return self.root / "tasks"

    @property
    def mailbox_dir(self) -> Path:
        return self.root / "mailbox"

    @property
    def workers_dir(self) -> Path:
        return self.root / "workers"

    @property
    def shutdown_request(self) -> Path:
        return self.root / "shutdown.json"

    def task(self, task_id: str) -> Path:
        return self.tasks_dir / f"{task_id}.json"

    def task_lock(self, task_id: str) -> Path:
        return self.tasks_dir / f"{task_id}.json.lock"

    def worker_dir(self, worker_name: str) -> Path:
        return self.workers_dir / worker_name

    def inbox(self, worker_name: str) -> Path:
        return self.worker_dir(worker_name) / "inbox.md"

    def overlay(self, worker_name: str) -> Path:
        return self.worker_dir(worker_name) / "AGENTS.md"

    def heartbeat(self, worker_name: str) -> Path:
        return self.worker_dir(worker_name) / "heartbeat.json"

    def ready_sentinel(self, worker_name: str) -> Path:
        return self.worker_dir(worker_name) / ".ready"

    def shutdown_ack(self, worker_name: str) -> Path:
        return self.worker_dir(worker_name) / "shutdown-ack.json"

    def relative(self, path: Path, cwd: Path | str) -> str:
        """``path`` relative to the project directory, for messages shown to workers."""

        try:
            return path.relative_to(Path(cwd)).as_posix()
        except ValueError:
            return str(path)


def write_text_atomic(path: Path, content: str) -> None:
    """Write through a temp file in the same directory, then rename over ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_document(path: Path, document: Document) -> None:
    write_text_atomic(path, document.to_json())


def read_document(path: Path, model: type[M]) -> ReadResult[M]:
    """Read ``path`` as ``model``: ``Ok``, ``Missing`` or ``Malformed``, never an exception."""

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Missing(path)
    except (OSError, UnicodeDecodeError) as exc:
        return Malformed(path, str(exc))

    try:
        return Ok(model.model_validate_json(raw))
    except ValidationError as exc:
        return Malformed(path, str(exc))


def append_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(content)


__all__ = [
    "TeamPaths",
    "append_text",
    "read_document",
    "write_document",
    "write_text_atomic",
]
