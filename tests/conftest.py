from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from teamux.agents import AgentRegistry
from teamux.config import TeamuxSettings
from teamux.team import TeamContext
from teamux.tmux import FakeTmuxClient


def write_agent(agents_dir: Path, bin_dir: Path, agent_id: str = "x") -> Path:
    bin_dir.mkdir(parents=True, exist_ok=True)
    agents_dir.mkdir(parents=True, exist_ok=True)
    binary = bin_dir / f"{agent_id}-agent"
    binary.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    binary.chmod(0o755)
    (agents_dir / f"{agent_id}.yaml").write_text(
        f"id: {agent_id}\nbinary: {binary}\nargs:\n  - --worker\nenv:\n  X_AGENT_MODE: team\n",
        encoding="utf-8",
    )
    return binary


def fast_settings(**overrides) -> TeamuxSettings:
    settings = TeamuxSettings()
    settings.ready_timeout = 0.3
    settings.shutdown_timeout = 1.0
    settings.poll_interval = 0.05
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


@pytest.fixture
def fake_tmux() -> FakeTmuxClient:
    return FakeTmuxClient()


@pytest.fixture
def make_context(tmp_path: Path, fake_tmux: FakeTmuxClient) -> Callable[..., TeamContext]:
    agents_dir = tmp_path / "agents"
    write_agent(agents_dir, tmp_path / "bin")

    def factory(*, tmux: FakeTmuxClient | None = None, clock=None, **overrides) -> TeamContext:
        extra = {"clock": clock} if clock is not None else {}
        return TeamContext(
            settings=fast_settings(**overrides),
            tmux=tmux or fake_tmux,
            agents=AgentRegistry([agents_dir]),
            **extra,
        )

    return factory


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    return project
