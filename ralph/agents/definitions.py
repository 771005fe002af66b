"""Agent definition dataclass for Ralph."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class AgentDefinition:
    """Describes how to invoke an external coding agent non-interactively."""

    # Identity
    name: str  # Registry key (e.g., "claude-code")
    role: str  # Human description
    executable: str  # Binary looked up on PATH

    # Invocation
    prompt_args: list[str] = field(default_factory=list)  # Inserted before the prompt
    model_flag: Optional[str] = "--model"  # None if the agent takes no model option

    def build_command(self, prompt: str, model: Optional[str] = None) -> list[str]:
        """Build the argv for one iteration."""
        command = [self.executable]
        if model and self.model_flag:
            command += [self.model_flag, model]
        command += self.prompt_args
        command.append(prompt)
        return command
