"""tmux session control and worker launch utilities."""

from .client import FakeTmuxClient, TmuxClient, TmuxCommandError, TmuxError, TmuxNotFoundError, TmuxResult
from .launcher import WorkerLauncher, WorkerPaneConfig
from .session import InvalidNameError, SessionController, TeamSession, sanitize_name

__all__ = [
    "FakeTmuxClient",
    "InvalidNameError",
    "SessionController",
    "TeamSession",
    "TmuxClient",
    "TmuxCommandError",
    "TmuxError",
    "TmuxNotFoundError",
    "TmuxResult",
    "WorkerLauncher",
    "WorkerPaneConfig",
    "sanitize_name",
]
