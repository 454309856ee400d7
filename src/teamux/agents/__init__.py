"""Agent contracts and registry exports."""

from .loader import AgentCliNotFoundError, AgentLoadError, AgentRegistry, UnknownAgentTypeError
from .models import BUILTIN_AGENTS, AgentContract

__all__ = [
    "AgentCliNotFoundError",
    "AgentContract",
    "AgentLoadError",
    "AgentRegistry",
    "BUILTIN_AGENTS",
    "UnknownAgentTypeError",
]
