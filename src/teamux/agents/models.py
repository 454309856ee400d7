"""Agent contract models describing how to launch a worker CLI."""

from __future__ import annotations

import shlex
from typing import Any

from pydantic import BaseModel, Field, field_validator


class AgentContract(BaseModel):
    """Configuration describing how Teamux starts one kind of agent worker."""

    id: str = Field(..., description="Agent type identifier used in team configs.")
    binary: str = Field(..., description="Executable name or path looked up on PATH.")
    title: str = Field(default="", description="Display title for the agent type.")
    args: list[str] = Field(
        default_factory=list,
        description="Arguments appended to the binary when launching a worker.",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables exported to every worker of this type.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata, surfaced by list_agents.",
    )

    @field_validator("id", "binary")
    @classmethod
    def _normalize_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Agent id and binary must not be empty")
        return normalized

    @field_validator("args", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        if isinstance(value, str):
            return shlex.split(value)
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise TypeError("Agent args must be a sequence of strings or a command string")

    def launch_command(self) -> str:
        return shlex.join([self.binary, *self.args])


BUILTIN_AGENTS: tuple[AgentContract, ...] = (
    AgentContract(
        id="claude",
        binary="claude",
        title="Claude Code",
        args=["--dangerously-skip-permissions"],
    ),
    AgentContract(
        id="codex",
        binary="codex",
        title="Codex CLI",
        args=["--dangerously-bypass-approvals-and-sandbox"],
    ),
    AgentContract(
        id="gemini",
        binary="gemini",
        title="Gemini CLI",
        args=["--yolo"],
    ),
)


__all__ = ["AgentContract", "BUILTIN_AGENTS"]
