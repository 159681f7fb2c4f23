"""Main CLI for agent-board."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..core.board import AgentBoard, OperationResult
from ..core.config import load_config
from ..core.events import BoardEvent, EventType
from ..core.models import AgentMessage, ProcessStatus, Sender, TaskStatus
from ..utils.rich_logging import setup_logging

console = Console()

SENDER_STYLES = {
    Sender.USER: "bold cyan",
    Sender.AGENT: "green",
    Sender.SYSTEM: "dim",
}

STATUS_STYLES = {
    ProcessStatus.RUNNING: "yellow",
    ProcessStatus.COMPLETED: "green",
    ProcessStatus.FAILED: "red",
    ProcessStatus.KILLED: "magenta",
}


def _board(ctx) -> AgentBoard:
    return ctx.obj["board"]


def _unwrap(result: OperationResult):
    """Print the error and exit non-zero when an operation failed."""
    if not result.success:
        console.print(f"[red]Error: {result.error}[/]")
        raise SystemExit(1)
    return result.value


def _print_message(message: AgentMessage) -> None:
    # Agent output may contain [brackets]; keep it out of rich markup
    line = Text(f"{message.sender.value}/{message.message_type}: ",
                style=SENDER_STYLES.get(message.sender, ""))
    line.append(message.content)
    console.print(line, highlight=False)


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path),
              help="Config file (default: $AGENT_BOARD_CONFIG or ./agent-board.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """agent-board - run coding agents in isolated git worktrees."""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    setup_logging(
        log_level="DEBUG" if verbose else config.logging.level,
        log_dir=config.logs_dir if config.logging.to_file else None,
    )
    ctx.obj["config"] = config
    ctx.obj["board"] = AgentBoard(config)


# -- worktrees ----------------------------------------------------------------

@cli.group()
def worktree():
    """Manage per-task git worktrees."""


@worktree.command("create")
@click.argument("task_id")
@click.option("--repo", "-r", default=".", type=click.Path(path_type=Path), help="Source repository")
@click.pass_context
def worktree_create(ctx, task_id, repo):
    """Create a fresh worktree for TASK_ID from the repository's HEAD."""
    path = _unwrap(_board(ctx).create_worktree(task_id, str(repo.resolve())))
    console.print(f"[green]✓ Worktree created:[/] {path}")


@worktree.command("remove")
@click.argument("task_id")
@click.option("--repo", "-r", default=".", type=click.Path(path_type=Path), help="Source repository")
@click.pass_context
def worktree_remove(ctx, task_id, repo):
    """Remove TASK_ID's worktree and its branch."""
    board = _board(ctx)
    path = board.worktrees.path_for(task_id)
    _unwrap(board.remove_worktree(str(path), str(repo.resolve())))
    console.print(f"[green]✓ Removed worktree for {task_id}[/]")


@worktree.command("list")
@click.pass_context
def worktree_list(ctx):
    """List tasks that have a worktree."""
    board = _board(ctx)
    task_ids = _unwrap(board.list_worktrees())
    if not task_ids:
        console.print("[dim]No worktrees[/]")
        return

    table = Table()
    table.add_column("Task")
    table.add_column("Path")
    for task_id in task_ids:
        table.add_row(task_id, str(board.worktrees.path_for(task_id)))
    console.print(table)


def _resolve_worktree(board: AgentBoard, target: str) -> str:
    """Accept either a task id or a path."""
    path = Path(target)
    if path.exists():
        return str(path.resolve())
    try:
        return str(board.worktrees.path_for(target))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="TARGET") from e


@cli.command()
@click.argument("target")
@click.option("--stat", is_flag=True, help="Only show per-file line counts")
@click.pass_context
def diff(ctx, target, stat):
    """Show the changes in TARGET (task id or worktree path)."""
    board = _board(ctx)
    files = _unwrap(board.get_worktree_diffs(_resolve_worktree(board, target)))
    if not files:
        console.print("[dim]No changes[/]")
        return

    table = Table()
    table.add_column("File")
    table.add_column("+", style="green", justify="right")
    table.add_column("-", style="red", justify="right")
    for f in files:
        table.add_row(f.path, str(f.added), str(f.removed))
    console.print(table)

    if not stat:
        for f in files:
            console.rule(f.path)
            console.print(f.patch, highlight=False, markup=False)


@cli.command()
@click.argument("target")
@click.pass_context
def status(ctx, target):
    """Show `git status` for TARGET (task id or worktree path)."""
    board = _board(ctx)
    rows = _unwrap(board.get_worktree_status(_resolve_worktree(board, target)))
    if not rows:
        console.print("[dim]Working tree clean[/]")
        return

    table = Table()
    table.add_column("Status")
    table.add_column("Path")
    for row in rows:
        table.add_row(row.status, row.path)
    console.print(table)


@cli.command()
@click.argument("target")
@click.option("--message", "-m", required=True, help="Commit message")
@click.option("--file", "-f", "files", multiple=True, help="File to commit (repeatable; default: all changed)")
@click.pass_context
def commit(ctx, target, message, files):
    """Commit changes in TARGET (task id or worktree path)."""
    board = _board(ctx)
    worktree_path = _resolve_worktree(board, target)
    if not files:
        files = [row.path for row in _unwrap(board.get_worktree_status(worktree_path))]
    sha = _unwrap(board.commit_worktree_changes(worktree_path, list(files), message))
    console.print(f"[green]✓ Committed {len(files)} file(s):[/] {sha[:12]}")


# -- projects & tasks ---------------------------------------------------------

@cli.group()
def project():
    """Manage projects (git repositories)."""


@project.command("add")
@click.argument("name")
@click.argument("path", type=click.Path(path_type=Path), default=".")
@click.pass_context
def project_add(ctx, name, path):
    """Register the repository at PATH as project NAME."""
    created = _unwrap(_board(ctx).add_project(name, str(path)))
    console.print(f"[green]✓ Project {created.name}[/] ({created.id})")


@project.command("list")
@click.pass_context
def project_list(ctx):
    projects = _unwrap(_board(ctx).list_projects())
    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Path")
    for p in projects:
        table.add_row(p.id, p.name, p.project_path)
    console.print(table)


@cli.group()
def task():
    """Manage tasks on a project's board."""


@task.command("add")
@click.argument("project_id")
@click.argument("title")
@click.option("--description", "-d", default="", help="Task description")
@click.option("--profile", "-p", help="Agent profile (default from config)")
@click.pass_context
def task_add(ctx, project_id, title, description, profile):
    created = _unwrap(_board(ctx).add_task(project_id, title, description, profile))
    console.print(f"[green]✓ Task added:[/] {created.id}")


@task.command("list")
@click.argument("project_id")
@click.pass_context
def task_list(ctx, project_id):
    tasks = _unwrap(_board(ctx).list_tasks(project_id))
    table = Table()
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Profile")
    table.add_column("Worktree")
    for t in tasks:
        table.add_row(t.id, t.title, t.status.value, t.profile, t.worktree_path or "-")
    console.print(table)


@task.command("move")
@click.argument("project_id")
@click.argument("task_id")
@click.argument("new_status", type=click.Choice([s.value for s in TaskStatus]))
@click.option("--interactive", "-i", is_flag=True, help="Prompt for follow-up messages")
@click.pass_context
def task_move(ctx, project_id, task_id, new_status, interactive):
    """Move a task; moving to in_progress starts its agent and streams output."""
    board = _board(ctx)

    async def run():
        try:
            moved = _unwrap(await board.update_task_status(project_id, task_id, TaskStatus(new_status)))
            console.print(f"[green]✓ {moved.title}:[/] {moved.status.value}")
            processes = _unwrap(board.get_task_processes(moved.id))
            running = [p for p in processes if p.status == ProcessStatus.RUNNING]
            if running:
                await _follow(board, running[-1].id, interactive)
        finally:
            await board.shutdown()

    asyncio.run(run())


# -- agents -------------------------------------------------------------------

@cli.group()
def agent():
    """Run coding agents."""


@agent.command("profiles")
@click.pass_context
def agent_profiles(ctx):
    """List available agent profiles."""
    for name in _unwrap(_board(ctx).list_profiles()):
        console.print(name)


@agent.command("run")
@click.argument("task_id")
@click.argument("message")
@click.option("--worktree", "-w", "worktree_path", type=click.Path(path_type=Path),
              help="Existing worktree (default: the task's worktree)")
@click.option("--profile", "-p", help="Agent profile (default from config)")
@click.option("--interactive", "-i", is_flag=True, help="Prompt for follow-up messages")
@click.pass_context
def agent_run(ctx, task_id, message, worktree_path, profile, interactive):
    """Run an agent on TASK_ID with MESSAGE and stream its output."""
    board = _board(ctx)
    path = str(worktree_path.resolve()) if worktree_path else str(board.worktrees.path_for(task_id))

    async def run():
        try:
            process_id = _unwrap(await board.spawn_agent(task_id, message, path, profile))
            await _follow(board, process_id, interactive)
        finally:
            await board.shutdown()

    asyncio.run(run())


async def _follow(board: AgentBoard, process_id: str, interactive: bool) -> None:
    """Stream a process's messages until it finishes; optionally keep the conversation going."""
    def on_event(event: BoardEvent) -> None:
        if event.type == EventType.AGENT_MESSAGE_UPDATE and event.message is not None:
            _print_message(event.message)

    board.events.subscribe(on_event)
    try:
        current: Optional[str] = process_id
        while current:
            console.print(f"[dim]process {current}[/]")
            finished = _unwrap(await board.wait_for_process(current))
            style = STATUS_STYLES.get(finished.status, "")
            summary = f"[{style}]{finished.status.value}[/]"
            if finished.total_cost_usd is not None:
                summary += f" [dim](${finished.total_cost_usd:.4f}, {finished.num_turns or 0} turns)[/]"
            console.print(summary)

            current = None
            if interactive:
                follow_up = click.prompt("Follow-up (empty to stop)", default="", show_default=False)
                if follow_up.strip():
                    current = _unwrap(await board.send_agent_message(finished.id, follow_up))
    finally:
        board.events.unsubscribe(on_event)


if __name__ == "__main__":
    cli()
