"""Configuration management for Teamux."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .names import sanitize_name


class TeamuxSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    tmux_path: str | None = Field(default=None, validation_alias="TMUX_PATH")
    state_dir: Path = Field(
        default=Path(".teamux/state/team"), validation_alias="TEAMUX_STATE_DIR"
    )
    session_prefix: str = Field(default="teamux", validation_alias="TEAMUX_SESSION_PREFIX")
    default_agent_type: str = Field(default="claude", validation_alias="TEAMUX_DEFAULT_AGENT")
    agent_profile_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("agents"),), validation_alias="TEAMUX_AGENT_PATHS"
    )
    command_timeout: float = Field(default=5.0, validation_alias="TEAMUX_COMMAND_TIMEOUT")
    ready_timeout: float = Field(default=30.0, validation_alias="TEAMUX_READY_TIMEOUT")
    shutdown_timeout: float = Field(default=30.0, validation_alias="TEAMUX_SHUTDOWN_TIMEOUT")
    poll_interval: float = Field(default=0.5, validation_alias="TEAMUX_POLL_INTERVAL")
    stall_threshold: float = Field(default=60.0, validation_alias="TEAMUX_STALL_THRESHOLD")
    trigger_max_length: int = Field(default=200, validation_alias="TEAMUX_TRIGGER_MAX_LENGTH")
    log_level: str = Field(default="INFO", validation_alias="TEAMUX_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TEAMUX_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("agent_profile_paths", mode="before")
    @classmethod
    def _parse_agent_profile_paths(cls, value):
        if value is None or value == "":
            return (Path("agents"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("agents"),)
        raise TypeError("TEAMUX_AGENT_PATHS must be a list of paths or a path-separated string")

    @field_validator(
        "command_timeout", "ready_timeout", "shutdown_timeout", "poll_interval", "stall_threshold"
    )
    @classmethod
    def _validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts and intervals must be > 0 seconds")
        return value

    @field_validator("trigger_max_length")
    @classmethod
    def _validate_trigger_max_length(cls, value: int) -> int:
        if value < 1:
            raise ValueError("TEAMUX_TRIGGER_MAX_LENGTH must be >= 1")
        return value

    def team_root(self, cwd: Path | str, team_name: str) -> Path:
        """Return the on-disk state directory for ``team_name`` under ``cwd``.

        Keyed on the sanitized team name, like the tmux session.
        """

        return Path(cwd) / self.state_dir / sanitize_name(team_name)


@lru_cache(maxsize=1)
def get_settings() -> TeamuxSettings:
    """Return cached settings instance."""

    settings = TeamuxSettings()
    settings.agent_profile_paths = tuple(
        path.expanduser().resolve() for path in settings.agent_profile_paths
    )
    return settings


__all__ = ["TeamuxSettings", "get_settings"]
