"""Configuration for Ralph with validation."""

from pathlib import Path
from typing import Optional

import structlog
import toml
from pydantic import BaseModel, ConfigDict, Field, field_validator

log = structlog.get_logger()

TASKS_FILENAME = "ralph-tasks.md"
STATE_FILENAME = "ralph-loop.state.json"


class RalphConfig(BaseModel):
    """Main configuration for Ralph with validation."""

    model_config = ConfigDict(validate_assignment=True)

    # Paths
    state_dir: Path = Path(".ralph")

    # Agent
    agent: str = "claude-code"
    model: Optional[str] = None

    # Loop
    max_iterations: int = Field(gt=0, default=50)
    min_iterations: int = Field(ge=1, default=1)
    completion_promise: str = "COMPLETE"
    tasks_mode: bool = False

    # Logging
    log_level: str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR)$")
    log_file: Optional[Path] = None
    log_format: str = Field(default="console", pattern="^(console|json)$")

    @field_validator("completion_promise")
    @classmethod
    def promise_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("completion_promise cannot be empty")
        return v.strip()

    @field_validator("agent")
    @classmethod
    def agent_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Agent name cannot be empty")
        return v.strip()

    @field_validator("min_iterations")
    @classmethod
    def min_not_above_max(cls, v, info):
        if "max_iterations" in info.data and v > info.data["max_iterations"]:
            raise ValueError("min_iterations must not exceed max_iterations")
        return v

    @property
    def tasks_file(self) -> Path:
        return Path(self.state_dir).expanduser() / TASKS_FILENAME

    @property
    def state_file(self) -> Path:
        return Path(self.state_dir).expanduser() / STATE_FILENAME

    @classmethod
    def load(cls, path: Optional[str] = None, **overrides) -> "RalphConfig":
        """Load configuration from TOML file.

        Search order if path not provided:
        1. ./ralph.toml (project-specific)
        2. ~/.ralph/config.toml (user default)

        Args:
            path: Optional explicit config file path
            overrides: Values taking precedence over the file (None is skipped)

        Returns:
            RalphConfig instance
        """
        overrides = {k: v for k, v in overrides.items() if v is not None}

        if path is None:
            candidates = [
                Path("ralph.toml"),
                Path("~/.ralph/config.toml").expanduser(),
            ]
            for candidate in candidates:
                if candidate.exists():
                    path = str(candidate)
                    log.info("config_found", path=path)
                    break

        data = {}
        if path and Path(path).exists():
            try:
                data = toml.load(path)
                log.info("config_loaded", path=path)
            except (toml.TomlDecodeError, OSError) as e:
                log.error("config_load_failed", path=path, error=str(e))
                data = {}
        else:
            log.info("config_using_defaults")

        return cls(**{**data, **overrides})

    def save(self, path: str):
        """Save configuration to TOML file.

        Args:
            path: File path to save to
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            data = self.model_dump(mode="json", exclude_none=True)
            toml.dump(data, f)
        log.info("config_saved", path=path)
