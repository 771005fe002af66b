"""Agent registry for Ralph."""

import shutil
from typing import Optional

from ralph.agents.definitions import AgentDefinition
from ralph.core.errors import AgentNotFoundError

# Agents Ralph knows how to drive in print/exec mode
AGENTS: dict[str, AgentDefinition] = {
    "claude-code": AgentDefinition(
        name="claude-code",
        role="Anthropic Claude Code CLI",
        executable="claude",
        prompt_args=["--print", "--dangerously-skip-permissions"],
    ),
    "codex": AgentDefinition(
        name="codex",
        role="OpenAI Codex CLI",
        executable="codex",
        prompt_args=["exec", "--full-auto"],
    ),
    "opencode": AgentDefinition(
        name="opencode",
        role="OpenCode CLI",
        executable="opencode",
        prompt_args=["run"],
    ),
}


def get_agent(name: str) -> Optional[AgentDefinition]:
    """Get agent definition by name."""
    return AGENTS.get(name)


def list_agents() -> list[str]:
    """List all registered agent names."""
    return list(AGENTS.keys())


def resolve_agent(name: str, check_installed: bool = True) -> AgentDefinition:
    """Look up an agent and make sure its executable is on PATH.

    Raises:
        AgentNotFoundError: Unknown name or executable not installed
    """
    agent = get_agent(name)
    if agent is None:
        raise AgentNotFoundError(
            f"Unknown agent '{name}'. Available: {', '.join(list_agents())}"
        )
    if check_installed and shutil.which(agent.executable) is None:
        raise AgentNotFoundError(
            f"Agent '{name}' requires '{agent.executable}' on PATH"
        )
    return agent
