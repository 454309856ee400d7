"""Async client for the tmux executable."""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


class TmuxError(RuntimeError):
    """Base class for tmux client errors."""


class TmuxNotFoundError(TmuxError):
    """Raised when the tmux executable cannot be located."""


class TmuxCommandError(TmuxError):
    """Raised when a tmux command exits non-zero, cannot start, or times out."""

    def __init__(self, message: str, result: "TmuxResult | None" = None) -> None:
        super().__init__(message)
        self.result = result


@dataclass(slots=True)
class TmuxResult:
    """Holds the outcome of a tmux invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def lines(self) -> list[str]:
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


class TmuxClient:
    """Execute tmux commands asynchronously, each bounded by ``timeout`` seconds."""

    def __init__(self, executable: Path | None = None, *, timeout: float = 5.0) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._timeout = timeout

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise TmuxNotFoundError(f"tmux executable not found at {candidate}")

        binary = shutil.which("tmux")
        if binary is None:
            raise TmuxNotFoundError(
                "tmux is not available. Install it:\n"
                "  macOS: brew install tmux\n"
                "  Ubuntu/Debian: sudo apt-get install tmux\n"
                "  Fedora: sudo dnf install tmux\n"
                "  Arch: sudo pacman -S tmux"
            )
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    @property
    def timeout(self) -> float:
        return self._timeout

    async def version(self) -> TmuxResult:
        return await self._invoke("-V")

    async def ensure_available(self) -> str:
        """Return the tmux version string or raise ``TmuxNotFoundError``."""

        try:
            result = await self._invoke("-V")
        except TmuxCommandError as exc:
            raise TmuxNotFoundError(f"tmux at {self._executable_path} is not usable: {exc}") from exc
        if not result.ok:
            raise TmuxNotFoundError(
                f"tmux at {self._executable_path} is not usable: {result.stderr.strip()}"
            )
        return result.stdout.strip()

    async def run(self, *args: str, check: bool = True) -> TmuxResult:
        """Invoke tmux; with ``check`` a non-zero exit raises ``TmuxCommandError``."""

        result = await self._invoke(*args)
        if check and not result.ok:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise TmuxCommandError(f"tmux {' '.join(args)} failed: {detail}", result)
        return result

    async def _invoke(self, *args: str) -> TmuxResult:
        cmd = [str(self._executable_path), *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TmuxCommandError(f"Unable to start tmux: {exc}") from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise TmuxCommandError(
                f"tmux {' '.join(args)} timed out after {self._timeout:g}s"
            ) from exc

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return TmuxResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeTmuxClient(TmuxClient):
    """Test double that simulates a tmux server with in-memory sessions and panes.

    Panes are listed in visual order, which differs from creation order: a split
    inserts the new pane right after its target, the way tmux does.
    """

    def __init__(self, *, failing: Iterable[str] | None = None) -> None:  # type: ignore[override]
        self._executable_path = Path("/tmp/fake-tmux")
        self._timeout = 5.0
        self._failing = set(failing or [])
        self._next_pane = 0
        self._invocations: list[tuple[str, ...]] = []
        self.sessions: dict[str, list[str]] = {}
        self.dead_panes: set[str] = set()
        self.sent_keys: list[tuple[str, str, bool]] = []
        self.layouts: dict[str, str] = {}

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    def _new_pane(self) -> str:
        pane_id = f"%{self._next_pane}"
        self._next_pane += 1
        return pane_id

    def _session_of(self, target: str) -> str | None:
        if target in self.sessions:
            return target
        for name, panes in self.sessions.items():
            if target in panes:
                return name
        return None

    @staticmethod
    def _option(args: tuple[str, ...], flag: str) -> str | None:
        if flag in args:
            index = args.index(flag)
            if index + 1 < len(args):
                return args[index + 1]
        return None

    def _result(self, args: tuple[str, ...], returncode: int = 0, stdout: str = "", stderr: str = "") -> TmuxResult:
        return TmuxResult(args=("tmux", *args), returncode=returncode, stdout=stdout, stderr=stderr)

    async def _invoke(self, *args: str) -> TmuxResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        command = args[0] if args else ""
        if command in self._failing:
            return self._result(args, 1, stderr=f"simulated failure: {command}")

        if command == "-V":
            return self._result(args, stdout="tmux 3.4\n")

        if command == "new-session":
            name = self._option(args, "-s") or f"session-{len(self.sessions)}"
            if name in self.sessions:
                return self._result(args, 1, stderr=f"duplicate session: {name}")
            self.sessions[name] = [self._new_pane()]
            return self._result(args)

        if command == "has-session":
            target = self._option(args, "-t") or ""
            if target in self.sessions:
                return self._result(args)
            return self._result(args, 1, stderr=f"can't find session: {target}")

        if command == "kill-session":
            target = self._option(args, "-t") or ""
            panes = self.sessions.pop(target, None)
            if panes is None:
                return self._result(args, 1, stderr=f"can't find session: {target}")
            return self._result(args)

        if command == "display-message":
            target = self._option(args, "-t") or ""
            fmt = self._option(args, "-p") or ""
            session = self._session_of(target)
            if session is None:
                return self._result(args, 1, stderr=f"can't find pane: {target}")
            pane_id = target if target.startswith("%") else self.sessions[session][0]
            if fmt == "#{pane_dead}":
                return self._result(args, stdout="1\n" if pane_id in self.dead_panes else "0\n")
            return self._result(args, stdout=f"{pane_id}\n")

        if command == "split-window":
            target = self._option(args, "-t") or ""
            session = self._session_of(target)
            if session is None:
                return self._result(args, 1, stderr=f"can't find pane: {target}")
            panes = self.sessions[session]
            new_pane = self._new_pane()
            anchor = panes.index(target) if target in panes else len(panes) - 1
            panes.insert(anchor + 1, new_pane)
            return self._result(args)

        if command == "list-panes":
            target = self._option(args, "-t") or ""
            session = self._session_of(target)
            if session is None:
                return self._result(args, 1, stderr=f"can't find session: {target}")
            return self._result(args, stdout="".join(f"{pane}\n" for pane in self.sessions[session]))

        if command == "select-layout":
            target = self._option(args, "-t") or ""
            self.layouts[target] = args[-1]
            return self._result(args)

        if command == "send-keys":
            target = self._option(args, "-t") or ""
            if self._session_of(target) is None:
                return self._result(args, 1, stderr=f"can't find pane: {target}")
            literal = "-l" in args
            self.sent_keys.append((target, args[-1], literal))
            return self._result(args)

        return self._result(args, 1, stderr=f"unknown command: {command}")

    def kill_pane(self, pane_id: str) -> None:
        """Mark ``pane_id`` dead, as if its process exited."""

        self.dead_panes.add(pane_id)


__all__ = [
    "FakeTmuxClient",
    "TmuxClient",
    "TmuxCommandError",
    "TmuxError",
    "TmuxNotFoundError",
    "TmuxResult",
]
