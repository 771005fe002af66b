"""Markdown task list for Ralph's tasks mode.

Tasks live in a checkbox list::

    # Ralph Tasks

    - [ ] Write unit tests
      - [x] Cover the parser
    - [ ] Update docs

Top-level items are numbered 1..N in file order; subtasks are nested two
spaces per level and numbered under their parent (``1.1``, ``1.1.2``).
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import structlog

from ralph.core.errors import TaskNotFoundError

log = structlog.get_logger()

HEADER = "# Ralph Tasks"
INDENT = "  "

ITEM_PATTERN = re.compile(r"^(?P<indent>\s*)[-*]\s+\[(?P<mark>[ xX])\]\s+(?P<text>.*?)\s*$")


@dataclass
class Task:
    """A checkbox item and its nested subtasks."""

    description: str
    checked: bool = False
    id: str = ""
    subtasks: list["Task"] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return self.id.count(".")

    def walk(self) -> Iterator["Task"]:
        """Yield this task and every nested subtask in file order."""
        yield self
        for subtask in self.subtasks:
            yield from subtask.walk()

    def count(self) -> int:
        return sum(1 for _ in self.walk())


def parse_tasks(content: str) -> list[Task]:
    """Parse checkbox lines into a task tree, ignoring everything else."""
    roots: list[Task] = []
    # (indent width, task) for the chain of currently open parents
    stack: list[tuple[int, Task]] = []

    for line in content.splitlines():
        match = ITEM_PATTERN.match(line)
        if not match:
            continue
        width = len(match.group("indent").expandtabs(4))
        task = Task(
            description=match.group("text"),
            checked=match.group("mark") != " ",
        )
        while stack and stack[-1][0] >= width:
            stack.pop()
        if stack:
            stack[-1][1].subtasks.append(task)
        else:
            roots.append(task)
        stack.append((width, task))

    _number(roots)
    return roots


def _number(tasks: list[Task], prefix: str = ""):
    for index, task in enumerate(tasks, start=1):
        task.id = f"{prefix}{index}"
        _number(task.subtasks, prefix=f"{task.id}.")


def render_checklist(tasks: list[Task], level: int = 0) -> list[str]:
    """Checkbox lines for a task tree, indented by nesting level."""
    lines = []
    for task in tasks:
        mark = "x" if task.checked else " "
        lines.append(f"{INDENT * level}- [{mark}] {task.description}")
        lines.extend(render_checklist(task.subtasks, level + 1))
    return lines


def render_tasks(tasks: list[Task]) -> str:
    return "\n".join([HEADER, ""] + render_checklist(tasks)) + "\n"


class TaskStore:
    """Reads and writes the markdown task file.

    The file is re-read on every operation so edits made by the agent
    between iterations are picked up.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[Task]:
        if not self.path.exists():
            return []
        return parse_tasks(self.path.read_text(encoding="utf-8"))

    def save(self, tasks: list[Task]):
        _number(tasks)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(render_tasks(tasks), encoding="utf-8")
        temp_path.replace(self.path)

    def add(self, description: str, parent: Optional[str] = None) -> Task:
        """Append an unchecked task, or a subtask under ``parent``.

        Returns:
            The new task with its assigned id
        """
        description = description.strip()
        if not description:
            raise ValueError("Task description cannot be empty")

        tasks = self.load()
        task = Task(description=description)
        if parent is None:
            tasks.append(task)
        else:
            self._find(tasks, parent).subtasks.append(task)
        self.save(tasks)

        log.info("task_added", task_id=task.id, description=description)
        return task

    def list_tasks(self) -> list[Task]:
        """All tasks flattened in stored order."""
        return [task for root in self.load() for task in root.walk()]

    def remove(self, task_id: str) -> int:
        """Remove a task and all of its subtasks.

        Returns:
            Number of items removed
        """
        tasks = self.load()
        siblings, task = self._locate(tasks, task_id)
        siblings.remove(task)
        removed = task.count()
        self.save(tasks)

        log.info("task_removed", task_id=task_id, removed=removed)
        return removed

    def complete(self, task_id: str) -> Task:
        """Mark a task as checked."""
        tasks = self.load()
        task = self._find(tasks, task_id)
        task.checked = True
        self.save(tasks)

        log.info("task_completed", task_id=task_id)
        return task

    def next_pending(self) -> Optional[Task]:
        """First unchecked task in file order, if any."""
        for task in self.list_tasks():
            if not task.checked:
                return task
        return None

    def _find(self, tasks: list[Task], task_id: str) -> Task:
        return self._locate(tasks, task_id)[1]

    def _locate(self, tasks: list[Task], task_id: str) -> tuple[list[Task], Task]:
        """Return the list holding ``task_id`` and the task itself."""
        siblings = tasks
        task = None
        for part in str(task_id).strip().split("."):
            if task is not None:
                siblings = task.subtasks
            if not part.isdigit() or not 1 <= int(part) <= len(siblings):
                raise TaskNotFoundError(str(task_id))
            task = siblings[int(part) - 1]
        return siblings, task
