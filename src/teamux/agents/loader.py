"""Agent registry: built-in contracts plus YAML overrides on disk."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .models import BUILTIN_AGENTS, AgentContract


class AgentLoadError(RuntimeError):
    """Raised when one or more agent files cannot be parsed."""


class UnknownAgentTypeError(AgentLoadError):
    """Raised when a team asks for an agent type nobody defined."""


class AgentCliNotFoundError(RuntimeError):
    """Raised when an agent's CLI executable is not on PATH."""


class AgentRegistry:
    """Resolves agent types to launch commands and worker environments."""

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, AgentContract]:
        """Return built-in contracts overlaid with every YAML file in the search paths.

        Later search paths override earlier ones when agent ids collide.
        """

        agents = {agent.id: agent for agent in BUILTIN_AGENTS}
        errors: list[str] = []

        for base in self._search_paths:
            for path in sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")):
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:  # pragma: no cover - library type
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                try:
                    agent = AgentContract.model_validate(document)
                except ValidationError as exc:
                    errors.append(f"Agent validation error in {path}: {exc}")
                    continue

                agents[agent.id] = agent

        if errors:
            raise AgentLoadError("; ".join(errors))

        return agents

    def get(self, agent_type: str) -> AgentContract:
        agents = self.load_all()
        try:
            return agents[agent_type]
        except KeyError as exc:
            known = ", ".join(sorted(agents))
            raise UnknownAgentTypeError(
                f"Unknown agent type '{agent_type}' (known: {known})"
            ) from exc

    def validate_available(self, agent_type: str) -> Path:
        """Return the resolved CLI path or raise ``AgentCliNotFoundError``."""

        agent = self.get(agent_type)
        binary = shutil.which(agent.binary)
        if binary is None:
            raise AgentCliNotFoundError(
                f"CLI for agent type '{agent_type}' not found on PATH: {agent.binary}"
            )
        return Path(binary)

    def build_worker_command(self, agent_type: str) -> str:
        return self.get(agent_type).launch_command()

    def worker_env(
        self,
        agent_type: str,
        *,
        team_name: str,
        worker_name: str,
        state_dir: Path,
    ) -> dict[str, str]:
        """Environment handed to a worker so it can find its own state directory."""

        agent = self.get(agent_type)
        env = {
            "TEAMUX_TEAM_WORKER": f"{team_name}/{worker_name}",
            "TEAMUX_TEAM_NAME": team_name,
            "TEAMUX_WORKER_NAME": worker_name,
            "TEAMUX_AGENT_TYPE": agent_type,
            "TEAMUX_STATE_DIR": str(state_dir),
        }
        env.update(agent.env)
        return env


__all__ = [
    "AgentCliNotFoundError",
    "AgentLoadError",
    "AgentRegistry",
    "UnknownAgentTypeError",
]
