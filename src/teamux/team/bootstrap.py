"""Per-worker bootstrap files: state directory, role overlay and inbox."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .models import TaskRecord
from .store import TeamPaths, append_text, write_text_atomic


def ensure_worker_state_dir(paths: TeamPaths, worker_name: str) -> Path:
    worker_dir = paths.worker_dir(worker_name)
    worker_dir.mkdir(parents=True, exist_ok=True)
    return worker_dir


def render_worker_overlay(
    paths: TeamPaths,
    *,
    team_name: str,
    worker_name: str,
    agent_type: str,
    tasks: Iterable[TaskRecord],
    cwd: Path | str,
) -> str:
    """Render the AGENTS.md document a worker reads before claiming work."""

    def rel(path: Path) -> str:
        return paths.relative(path, cwd)

    task_lines = "\n".join(
        f"- Task {task.id}: {task.subject}" + (f" ({task.description})" if task.description else "")
        for task in tasks
    )
    sections = [
        f"# Team {team_name}: {worker_name}",
        f"You are `{worker_name}`, a `{agent_type}` worker in team `{team_name}`.",
        "Startup:\n"
        f"- Create the ready sentinel `{rel(paths.ready_sentinel(worker_name))}` as soon as you start.\n"
        f"- Read new instructions from `{rel(paths.inbox(worker_name))}`.",
        "Task protocol:\n"
        f"- Tasks live in `{rel(paths.tasks_dir)}/<id>.json`.\n"
        "- Work only on tasks whose `owner` is your name and whose `status` is `in_progress`.\n"
        "- When done, set `status` to `completed` (or `failed`) and put a summary in `result`.",
        "Heartbeat:\n"
        f"- Overwrite `{rel(paths.heartbeat(worker_name))}` at least every 30 seconds with\n"
        '  `{"updatedAt": "<ISO-8601 timestamp>", "currentTaskId": "<id or null>"}`.',
        "Shutdown:\n"
        f"- When `{rel(paths.shutdown_request)}` appears, finish the current step, write\n"
        f"  `{rel(paths.shutdown_ack(worker_name))}` and exit.",
        "Tasks on the board:\n" + (task_lines or "- (none yet)"),
    ]
    return "\n\n".join(sections) + "\n"


def write_worker_overlay(paths: TeamPaths, content: str, worker_name: str) -> Path:
    overlay_path = paths.overlay(worker_name)
    write_text_atomic(overlay_path, content)
    return overlay_path


def compose_initial_inbox(paths: TeamPaths, *, team_name: str, worker_name: str, cwd: Path | str) -> Path:
    """Start the worker's inbox with a welcome pointing at its overlay and the task board."""

    inbox_path = paths.inbox(worker_name)
    welcome = (
        f"# Welcome, {worker_name}\n\n"
        f"Read your AGENTS.md overlay at {paths.relative(paths.overlay(worker_name), cwd)}\n\n"
        f"Write your ready sentinel first, then claim tasks from "
        f"{paths.relative(paths.tasks_dir, cwd)}/\n"
    )
    write_text_atomic(inbox_path, welcome)
    return inbox_path


def append_task_assignment(paths: TeamPaths, *, worker_name: str, task_id: str, cwd: Path | str) -> Path:
    inbox_path = paths.inbox(worker_name)
    message = (
        "\n\n---\n"
        "## New Task Assignment\n"
        f"Task ID: {task_id}\n"
        f"Claim and execute task from: {paths.relative(paths.task(task_id), cwd)}\n"
    )
    append_text(inbox_path, message)
    return inbox_path


__all__ = [
    "append_task_assignment",
    "compose_initial_inbox",
    "ensure_worker_state_dir",
    "render_worker_overlay",
    "write_worker_overlay",
]
