"""Teamux diagnostics CLI: inspect a team's on-disk state without tmux."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from teamux.config import TeamuxSettings
from teamux.names import InvalidNameError
from teamux.team import Malformed, Missing, TaskBoard, TeamConfig, TeamPaths, derive_phase
from teamux.team.health import read_heartbeat
from teamux.team.store import read_document


def load_paths(settings: TeamuxSettings, args: argparse.Namespace) -> TeamPaths:
    cwd = Path(args.cwd) if args.cwd else Path.cwd()
    try:
        paths = TeamPaths(settings.team_root(cwd, args.team))
    except InvalidNameError as exc:
        print(str(exc))
        raise SystemExit(1)
    if not paths.root.is_dir():
        print(f"Team state not found: {paths.root}")
        raise SystemExit(1)
    return paths


def load_config(paths: TeamPaths) -> TeamConfig:
    result = read_document(paths.config, TeamConfig)
    if isinstance(result, Missing):
        print(f"Team config missing: {result.path}")
        raise SystemExit(1)
    if isinstance(result, Malformed):
        print(f"Team config unreadable: {result.error}")
        raise SystemExit(1)
    return result.value


def cmd_config(args: argparse.Namespace) -> None:
    settings = TeamuxSettings()
    paths = load_paths(settings, args)
    config = load_config(paths)
    print(config.to_json())


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = TeamuxSettings()
    paths = load_paths(settings, args)
    tasks = TaskBoard(paths).list_tasks()
    if args.json:
        print(json.dumps([task.to_payload() for task in tasks], indent=2))
    else:
        for task in tasks:
            print(f"{task.id} [{task.status}] {task.subject} -> {task.owner or '-'}")


def cmd_status(args: argparse.Namespace) -> None:
    settings = TeamuxSettings()
    paths = load_paths(settings, args)
    config = load_config(paths)
    counts = TaskBoard(paths).count_tasks()

    workers = []
    for index in range(config.worker_count):
        name = f"worker-{index + 1}"
        heartbeat = read_heartbeat(paths, name)
        workers.append(
            {
                "worker": name,
                "ready": paths.ready_sentinel(name).exists(),
                "last_heartbeat": heartbeat.updated_at.isoformat() if heartbeat else None,
                "current_task_id": heartbeat.current_task_id if heartbeat else None,
                "shutdown_acked": paths.shutdown_ack(name).exists(),
            }
        )

    payload = {
        "team_name": config.team_name,
        "phase": derive_phase(counts),
        "task_counts": {
            "pending": counts.pending,
            "in_progress": counts.in_progress,
            "completed": counts.completed,
            "failed": counts.failed,
            "malformed": counts.malformed,
        },
        "shutdown_requested": paths.shutdown_request.exists(),
        "workers": workers,
    }
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Teamux diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    def add_team_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("team", help="Team name")
        p.add_argument("--cwd", help="Project directory holding the team state (default: .)")

    p_config = sub.add_parser("config", help="Print the persisted team config")
    add_team_args(p_config)
    p_config.set_defaults(func=cmd_config)

    p_tasks = sub.add_parser("tasks", help="List task records")
    add_team_args(p_tasks)
    p_tasks.add_argument("--json", action="store_true", help="Output JSON")
    p_tasks.set_defaults(func=cmd_tasks)

    p_status = sub.add_parser("status", help="Show phase, task counts and worker files")
    add_team_args(p_status)
    p_status.set_defaults(func=cmd_status)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
