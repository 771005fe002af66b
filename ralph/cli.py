"""Ralph CLI - run a coding agent in a loop until it keeps its promise."""

import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ralph import __version__
from ralph.agents.registry import list_agents, resolve_agent
from ralph.config import RalphConfig
from ralph.core.errors import RalphError
from ralph.core.loop import AgentLoop, AgentOutput, LoopConfig, load_state
from ralph.core.tasks import TaskStore
from ralph.logging import setup_logging

console = Console()


def _fail(message: str):
    console.print(f"[red]✗ {escape(message)}[/]")
    sys.exit(1)


def _load_config(config_path, **overrides) -> RalphConfig:
    try:
        return RalphConfig.load(config_path, **overrides)
    except ValidationError as e:
        raise click.UsageError(f"Invalid configuration: {e}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("prompt", required=False)
@click.option("--agent", "-a", "agent", metavar="AGENT",
              help=f"Agent to run ({', '.join(list_agents())})")
@click.option("--model", "-m", help="Model passed to the agent")
@click.option("--max-iterations", type=int, help="Maximum iterations")
@click.option("--min-iterations", type=int, help="Ignore the promise before this iteration")
@click.option("--completion-promise", help="Token the agent prints when done")
@click.option("--tasks", "tasks_mode", is_flag=True, default=None,
              help="Include the task list in every prompt")
@click.option("--status", is_flag=True, help="Show the state of the running loop")
@click.option("--add-task", metavar="TEXT", help="Add a task to the task list")
@click.option("--parent", metavar="ID", help="Parent task id for --add-task")
@click.option("--list-tasks", is_flag=True, help="List tasks")
@click.option("--remove-task", metavar="ID", help="Remove a task and its subtasks")
@click.option("--complete-task", metavar="ID", help="Mark a task as done")
@click.option("--config", "config_path", type=click.Path(), help="Path to ralph.toml")
@click.option("--verbose", "-v", is_flag=True, help="Show log output")
@click.option("--log-json", is_flag=True, help="Write log lines as JSON")
@click.version_option(version=__version__, prog_name="ralph", message="%(prog)s %(version)s")
def cli(
    prompt, agent, model, max_iterations, min_iterations, completion_promise,
    tasks_mode, status, add_task, parent, list_tasks, remove_task,
    complete_task, config_path, verbose, log_json,
):
    """Ralph - run an agent on PROMPT until it prints <promise>TOKEN</promise>.

    \b
    Usage:
      ralph "Build the feature" --agent claude-code --max-iterations 20
      ralph --add-task "Write unit tests"
      ralph --list-tasks
      ralph --status
    """
    if parent is not None and add_task is None:
        raise click.UsageError("--parent can only be used with --add-task")

    setup_logging(level="DEBUG" if verbose else "WARNING", json_format=log_json)
    config = _load_config(
        config_path,
        agent=agent,
        model=model,
        max_iterations=max_iterations,
        min_iterations=min_iterations,
        completion_promise=completion_promise,
        tasks_mode=tasks_mode,
        log_level="DEBUG" if verbose else None,
        log_format="json" if log_json else None,
    )
    if config.log_file or config.log_level != "WARNING" or config.log_format == "json":
        setup_logging(
            level=config.log_level,
            log_file=config.log_file,
            json_format=config.log_format == "json",
        )

    store = TaskStore(config.tasks_file)

    try:
        if add_task is not None:
            _add_task(store, add_task, parent)
        elif list_tasks:
            _list_tasks(store)
        elif remove_task is not None:
            removed = store.remove(remove_task)
            console.print(f"✅ Removed task {escape(remove_task)} and its subtasks")
            console.print(f"[dim]{removed} item(s) removed[/dim]")
        elif complete_task is not None:
            task = store.complete(complete_task)
            console.print(f"✅ Completed task {task.id}: {escape(task.description)}")
        elif status:
            _show_status(config)
        elif prompt:
            _run_loop(config, prompt, store)
        else:
            click.echo(click.get_current_context().get_help())
    except (ValueError, RalphError) as e:
        _fail(str(e))


def _add_task(store: TaskStore, description: str, parent):
    task = store.add(description, parent=parent)
    console.print(f'✅ Task added: "{escape(task.description)}"')
    console.print(f"[dim]Task id: {task.id}[/dim]")


def _list_tasks(store: TaskStore):
    tasks = store.list_tasks()
    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        console.print("[dim]Add one with: ralph --add-task \"...\"[/dim]")
        return

    table = Table(title="Ralph Tasks", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Done", justify="center", width=4)
    table.add_column("Description", style="white")

    for task in tasks:
        done = "[green]✓[/green]" if task.checked else " "
        table.add_row(task.id, done, "  " * task.depth + escape(task.description))

    console.print(table)
    pending = sum(1 for t in tasks if not t.checked)
    console.print(f"\n[dim]{len(tasks)} task(s), {pending} pending[/dim]")


def _show_status(config: RalphConfig):
    state = load_state(config.state_file)
    if state is None:
        console.print("[yellow]No active Ralph loop[/yellow]")
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Agent", state.agent)
    table.add_row("Iteration", f"{state.iteration} / {state.max_iterations}")
    table.add_row("Promise", escape(f"<promise>{state.completion_promise}</promise>"))
    table.add_row("Started", state.started_at)
    if state.last_iteration_at:
        table.add_row("Last iteration", state.last_iteration_at)
    if state.last_returncode is not None:
        table.add_row("Last exit code", str(state.last_returncode))
    table.add_row("Tasks mode", "yes" if state.tasks_mode else "no")

    console.print(Panel(escape(state.prompt[:200]), title="🔁 Ralph Loop"))
    console.print(table)


def _run_loop(config: RalphConfig, prompt: str, store: TaskStore):
    agent = resolve_agent(config.agent)

    console.print(Panel(f"[bold blue]Task:[/] {escape(prompt)}", title="🔁 Ralph"))
    console.print(
        f"[dim]Agent: {agent.name} | Max iterations: {config.max_iterations} | "
        f"Promise: {escape(config.completion_promise)}[/dim]"
    )

    def on_iteration(iteration: int, output: AgentOutput):
        console.rule(f"Iteration {iteration}")
        if output.stdout:
            console.print(output.stdout, markup=False, highlight=False)
        if output.returncode != 0:
            console.print(f"[yellow]Agent exited with code {output.returncode}[/yellow]")

    loop = AgentLoop(
        agent,
        LoopConfig(
            max_iterations=config.max_iterations,
            min_iterations=config.min_iterations,
            completion_promise=config.completion_promise,
            model=config.model,
            tasks_mode=config.tasks_mode,
        ),
        state_file=config.state_file,
        tasks=store,
        work_dir=Path.cwd(),
        on_iteration=on_iteration,
    )

    try:
        result = asyncio.run(loop.run(prompt))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)

    if result.success:
        console.print(f"[green]✓ Completed in {result.iterations} iterations[/]")
    else:
        console.print(f"[red]✗ {result.reason} after {result.iterations} iterations[/]")
        sys.exit(1)


def main():
    cli()


if __name__ == "__main__":
    main()
