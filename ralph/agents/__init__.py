"""External coding agents Ralph can drive."""

from ralph.agents.definitions import AgentDefinition
from ralph.agents.registry import AGENTS, get_agent, list_agents, resolve_agent

__all__ = [
    "AGENTS",
    "AgentDefinition",
    "get_agent",
    "list_agents",
    "resolve_agent",
]
