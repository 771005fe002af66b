"""Exceptions raised by Ralph's task store, agent registry and config."""


class RalphError(Exception):
    """Base class for errors reported to the user."""
    pass


class TaskNotFoundError(RalphError):
    """No task with the given id exists."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class AgentNotFoundError(RalphError):
    """The agent name is unknown or its executable is not installed."""
    pass
