"""Shared test fixtures."""

import pytest
import tempfile
from pathlib import Path


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def task_store(temp_dir):
    """Task store backed by a file in the temp dir."""
    from ralph.core.tasks import TaskStore

    return TaskStore(temp_dir / ".ralph" / "ralph-tasks.md")


@pytest.fixture
def config(temp_dir):
    """Test configuration."""
    from ralph.config import RalphConfig

    return RalphConfig(state_dir=temp_dir / ".ralph", completion_promise="DONE")


@pytest.fixture
def fake_agent():
    """Agent definition that never touches a real executable."""
    from ralph.agents.definitions import AgentDefinition

    return AgentDefinition(
        name="fake",
        role="Test agent",
        executable="fake-agent",
        prompt_args=["run"],
    )
