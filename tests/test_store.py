from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from teamux.team import Malformed, Missing, Ok, TaskRecord, TeamConfig, TeamPaths
from teamux.team.bootstrap import (
    append_task_assignment,
    compose_initial_inbox,
    render_worker_overlay,
    write_worker_overlay,
)
from teamux.team.store import read_document, write_document, write_text_atomic


def test_read_document_variants(tmp_path: Path) -> None:
    good = tmp_path / "good.json"
    write_document(good, TeamConfig(team_name="alpha", worker_count=1, cwd="/work"))
    bad = tmp_path / "bad.json"
    bad.write_text('{"teamName": "alpha"}', encoding="utf-8")

    ok = read_document(good, TeamConfig)
    missing = read_document(tmp_path / "absent.json", TeamConfig)
    malformed = read_document(bad, TeamConfig)

    assert isinstance(ok, Ok) and ok.value.team_name == "alpha"
    assert isinstance(missing, Missing) and missing.path == tmp_path / "absent.json"
    assert isinstance(malformed, Malformed) and "workerCount" in malformed.error


def test_write_text_atomic_replaces_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "file.json"

    write_text_atomic(target, "first")
    write_text_atomic(target, "second")

    assert target.read_text(encoding="utf-8") == "second"
    assert [path.name for path in target.parent.iterdir()] == ["file.json"]


def test_team_paths_layout(tmp_path: Path) -> None:
    paths = TeamPaths(tmp_path / ".teamux" / "state" / "team" / "alpha")

    assert paths.task("3").name == "3.json"
    assert paths.inbox("worker-1").parent == paths.workers_dir / "worker-1"
    assert paths.relative(paths.task("3"), tmp_path) == ".teamux/state/team/alpha/tasks/3.json"
    assert paths.relative(Path("/elsewhere/file"), tmp_path) == "/elsewhere/file"


def test_overlay_and_inbox_contents(tmp_path: Path) -> None:
    paths = TeamPaths(tmp_path / ".teamux" / "state" / "team" / "alpha")
    task = TaskRecord(id="1", subject="Parse", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))

    overlay = render_worker_overlay(
        paths, team_name="alpha", worker_name="worker-1", agent_type="codex", tasks=[task], cwd=tmp_path
    )
    overlay_path = write_worker_overlay(paths, overlay, "worker-1")
    inbox_path = compose_initial_inbox(paths, team_name="alpha", worker_name="worker-1", cwd=tmp_path)
    append_task_assignment(paths, worker_name="worker-1", task_id="1", cwd=tmp_path)
    append_task_assignment(paths, worker_name="worker-1", task_id="2", cwd=tmp_path)

    assert overlay_path.name == "AGENTS.md"
    assert ".teamux/state/team/alpha/workers/worker-1/.ready" in overlay
    assert ".teamux/state/team/alpha/workers/worker-1/heartbeat.json" in overlay
    assert ".teamux/state/team/alpha/shutdown.json" in overlay
    assert "- Task 1: Parse" in overlay
    inbox = inbox_path.read_text(encoding="utf-8")
    assert inbox.startswith("# Welcome, worker-1")
    assert inbox.count("## New Task Assignment") == 2
    assert inbox.index("Task ID: 1") < inbox.index("Task ID: 2")


def test_read_document_undecodable_bytes_is_malformed(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    result = read_document(path, TeamConfig)

    assert isinstance(result, Malformed)
    assert result.path == path
