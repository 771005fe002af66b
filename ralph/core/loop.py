"""
The Ralph loop.

Sends the same prompt to an external agent over and over until:
- The agent prints the completion promise on a line of its own
- Max iterations reached
"""

import asyncio
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import structlog

from ralph.agents.definitions import AgentDefinition
from ralph.core.completion import CompletionDetector
from ralph.core.errors import AgentNotFoundError
from ralph.core.tasks import TaskStore, render_checklist
from ralph.prompts.system import ALL_TASKS_DONE, LOOP_PROMPT, TASKS_SECTION

log = structlog.get_logger()


@dataclass
class LoopConfig:
    max_iterations: int = 50
    min_iterations: int = 1  # Promise is ignored before this iteration
    completion_promise: str = "COMPLETE"
    model: Optional[str] = None
    tasks_mode: bool = False


@dataclass
class LoopResult:
    success: bool
    iterations: int
    reason: str = ""
    final_output: str = ""


@dataclass
class AgentOutput:
    returncode: int
    stdout: str
    stderr: str = ""


@dataclass
class LoopState:
    """Progress of a running loop, persisted for ``ralph --status``."""

    prompt: str
    agent: str
    completion_promise: str
    max_iterations: int
    iteration: int = 0
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    last_iteration_at: Optional[str] = None
    last_returncode: Optional[int] = None
    tasks_mode: bool = False


def save_state(path: Path, state: LoopState):
    """Write loop state atomically (temp file, then rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    temp_path.write_text(json.dumps(asdict(state), indent=2))
    temp_path.replace(path)
    log.debug("loop_state_saved", path=str(path), iteration=state.iteration)


def load_state(path: Path) -> Optional[LoopState]:
    """Load loop state, or None if no loop is running."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        return LoopState(**json.loads(path.read_text()))
    except (json.JSONDecodeError, TypeError) as e:
        log.warning("loop_state_unreadable", path=str(path), error=str(e))
        return None


def clear_state(path: Path):
    path = Path(path)
    if path.exists():
        path.unlink()
        log.debug("loop_state_cleared", path=str(path))


class AgentLoop:
    """Core iteration loop."""

    def __init__(
        self,
        agent: AgentDefinition,
        config: LoopConfig = None,
        state_file: Optional[Path] = None,
        tasks: Optional[TaskStore] = None,
        work_dir: Optional[Path] = None,
        on_iteration: Optional[Callable[[int, AgentOutput], None]] = None,
    ):
        self.agent = agent
        self.config = config or LoopConfig()
        self.state_file = Path(state_file) if state_file else None
        self.tasks = tasks
        self.work_dir = work_dir
        self.on_iteration = on_iteration
        self.completion = CompletionDetector(self.config.completion_promise)

    def build_prompt(self, prompt: str, iteration: int) -> str:
        """Prompt for one iteration, with the task list in tasks mode."""
        text = LOOP_PROMPT.format(
            prompt=prompt,
            iteration=iteration,
            max_iterations=self.config.max_iterations,
            promise=self.config.completion_promise,
        )
        if self.config.tasks_mode and self.tasks is not None:
            listing = "\n".join(render_checklist(self.tasks.load())) or "(no tasks)"
            pending = self.tasks.next_pending()
            current = f"{pending.id}. {pending.description}" if pending else ALL_TASKS_DONE
            text += TASKS_SECTION.format(
                tasks_file=self.tasks.path, current=current, tasks=listing
            )
        return text

    async def run_agent(self, prompt: str) -> AgentOutput:
        """Run the agent once and capture its output."""
        command = self.agent.build_command(prompt, model=self.config.model)
        log.info("agent_spawn", agent=self.agent.name, executable=command[0])

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.work_dir) if self.work_dir else None,
            )
        except FileNotFoundError as e:
            raise AgentNotFoundError(
                f"Agent '{self.agent.name}' requires '{self.agent.executable}' on PATH"
            ) from e

        stdout, stderr = await process.communicate()
        return AgentOutput(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
        )

    async def run(self, prompt: str) -> LoopResult:
        """Execute the loop until completion."""
        state = LoopState(
            prompt=prompt,
            agent=self.agent.name,
            completion_promise=self.config.completion_promise,
            max_iterations=self.config.max_iterations,
            tasks_mode=self.config.tasks_mode,
        )
        try:
            return await self._iterate(prompt, state)
        finally:
            if self.state_file:
                clear_state(self.state_file)

    async def _iterate(self, prompt: str, state: LoopState) -> LoopResult:
        output = AgentOutput(returncode=0, stdout="")

        for iteration in range(1, self.config.max_iterations + 1):
            log.info("iteration_start", iteration=iteration, agent=self.agent.name)
            state.iteration = iteration
            if self.state_file:
                save_state(self.state_file, state)

            # 1. Run the agent
            output = await self.run_agent(self.build_prompt(prompt, iteration))
            state.last_iteration_at = datetime.now().isoformat()
            state.last_returncode = output.returncode

            if output.returncode != 0:
                log.warning(
                    "agent_failed",
                    iteration=iteration,
                    returncode=output.returncode,
                    stderr=output.stderr[:200],
                )

            if self.on_iteration:
                self.on_iteration(iteration, output)

            # 2. Check completion
            if self.completion.is_complete(output.stdout):
                if iteration >= self.config.min_iterations:
                    return LoopResult(
                        success=True,
                        iterations=iteration,
                        reason="completion_promise",
                        final_output=output.stdout,
                    )
                log.info(
                    "completion_before_min_iterations",
                    iteration=iteration,
                    min_iterations=self.config.min_iterations,
                )

        return LoopResult(
            success=False,
            iterations=self.config.max_iterations,
            reason="max_iterations_reached",
            final_output=output.stdout,
        )
