from __future__ import annotations

import asyncio

import pytest

from teamux.config import TeamuxSettings
from teamux.tmux import (
    FakeTmuxClient,
    InvalidNameError,
    SessionController,
    TmuxCommandError,
    WorkerLauncher,
    WorkerPaneConfig,
    sanitize_name,
)
from teamux.names import require_clean_name


def make_controller(fake: FakeTmuxClient) -> SessionController:
    launcher = WorkerLauncher(fake, TeamuxSettings(), shell="/bin/bash", home="")
    return SessionController(fake, launcher, prefix="teamux")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("my team!", "myteam"),
        ("alpha-01", "alpha-01"),
        ("a.b/c;d", "abcd"),
        ("x" * 80, "x" * 50),
    ],
)
def test_sanitize_name(raw: str, expected: str) -> None:
    assert sanitize_name(raw) == expected


@pytest.mark.parametrize("raw", ["my team!", "alpha-01", "Ünïcode-ok", "z" * 70, "--"])
def test_sanitize_name_is_idempotent(raw: str) -> None:
    once = sanitize_name(raw)
    assert sanitize_name(once) == once


@pytest.mark.parametrize("raw", ["", "!!!", "a", "a!", " é "])
def test_sanitize_name_rejects_short_names(raw: str) -> None:
    with pytest.raises(InvalidNameError):
        sanitize_name(raw)


def test_require_clean_name() -> None:
    assert require_clean_name("alpha-01") == "alpha-01"
    for raw in ["t_1", "ab/../..", "my team", "x" * 51]:
        with pytest.raises(InvalidNameError):
            require_clean_name(raw)


def test_session_name_uses_prefix() -> None:
    controller = make_controller(FakeTmuxClient())

    assert controller.session_name("my team") == "teamux-myteam"


@pytest.mark.parametrize("worker_count", [0, 1, 2, 5])
def test_create_team_session_returns_distinct_panes(worker_count: int) -> None:
    fake = FakeTmuxClient()
    controller = make_controller(fake)

    session = asyncio.run(controller.create_team_session("demo", worker_count, "/tmp"))

    assert session.session_name == "teamux-demo"
    assert len(session.worker_pane_ids) == worker_count
    all_ids = [session.leader_pane_id, *session.worker_pane_ids]
    assert len(set(all_ids)) == worker_count + 1
    assert fake.layouts["teamux-demo"] == "main-vertical"


def test_create_team_session_split_topology() -> None:
    fake = FakeTmuxClient()
    controller = make_controller(fake)

    session = asyncio.run(controller.create_team_session("demo", 3, "/work"))

    splits = [call for call in fake.invocations if call[0] == "split-window"]
    assert splits[0][1:4] == ("-h", "-t", session.leader_pane_id)
    assert splits[1][1:4] == ("-v", "-t", session.worker_pane_ids[0])
    assert splits[2][1:4] == ("-v", "-t", session.worker_pane_ids[1])
    assert all(call[-2:] == ("-c", "/work") for call in splits)


def test_create_team_session_ignores_layout_failure() -> None:
    fake = FakeTmuxClient(failing={"select-layout"})
    controller = make_controller(fake)

    session = asyncio.run(controller.create_team_session("demo", 2, "/tmp"))

    assert len(session.worker_pane_ids) == 2


def test_create_team_session_propagates_split_failure() -> None:
    fake = FakeTmuxClient(failing={"split-window"})
    controller = make_controller(fake)

    with pytest.raises(TmuxCommandError):
        asyncio.run(controller.create_team_session("demo", 1, "/tmp"))


def test_list_panes_returns_creation_order() -> None:
    fake = FakeTmuxClient()
    controller = make_controller(fake)

    async def scenario() -> tuple[list[str], list[str]]:
        await fake.run("new-session", "-d", "-s", "teamux-demo")
        await fake.run("split-window", "-h", "-t", "%0")
        await fake.run("split-window", "-v", "-t", "%0")
        visual = (await fake.run("list-panes", "-t", "teamux-demo", "-F", "#{pane_id}")).lines()
        return visual, await controller.list_panes("teamux-demo")

    visual, ordered = asyncio.run(scenario())

    assert visual == ["%0", "%2", "%1"]
    assert ordered == ["%0", "%1", "%2"]


def test_has_session_and_kill() -> None:
    fake = FakeTmuxClient()
    controller = make_controller(fake)

    async def scenario() -> tuple[bool, bool, bool, bool]:
        await controller.create_team_session("demo", 1, "/tmp")
        before = await controller.has_session("teamux-demo")
        killed = await controller.kill_team_session("teamux-demo")
        after = await controller.has_session("teamux-demo")
        killed_again = await controller.kill_team_session("teamux-demo")
        return before, killed, after, killed_again

    before, killed, after, killed_again = asyncio.run(scenario())

    assert before is True
    assert killed is True
    assert after is False
    assert killed_again is False


def test_respawn_worker_in_pane_uses_new_pane() -> None:
    fake = FakeTmuxClient()
    controller = make_controller(fake)
    config = WorkerPaneConfig(team_name="demo", worker_name="worker-1", launch_cmd="agent", cwd="/tmp")

    async def scenario():
        session = await controller.create_team_session("demo", 1, "/tmp")
        fake.kill_pane(session.worker_pane_ids[0])
        new_pane = await controller.respawn_worker_in_pane(session.session_name, config)
        return session, new_pane

    session, new_pane = asyncio.run(scenario())

    assert new_pane not in {session.leader_pane_id, *session.worker_pane_ids}
    sent_to_new = [keys for pane, keys, _ in fake.sent_keys if pane == new_pane]
    assert sent_to_new[-1] == "Enter"
    assert "exec agent" in sent_to_new[0]
