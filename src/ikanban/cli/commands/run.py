import uuid
from pathlib import Path

import typer
from rich.console import Console

from ikanban.cli.client import get_project_id, request
from ikanban.cli.display import print_task_summary

console = Console()


def run(
    prompt: str = typer.Argument(..., help="Task description or prompt"),
    prompt_file: Path | None = typer.Option(None, "--file", "-f", help="Read the prompt from a file"),
    task_id: str | None = typer.Option(None, "--task-id", help="Explicit task id"),
    project: str | None = typer.Option(None, "--project", "-p", help="Project id"),
    title: str | None = typer.Option(None, "--title", "-t", help="Short task title"),
    start_command: str | None = typer.Option(
        None, "--start-command", help="Command to run when the worktree is created",
    ),
) -> None:
    """Start a task in a fresh worktree and hand it to the agent."""
    if prompt_file and prompt_file.exists():
        prompt = prompt_file.read_text()

    project = project or get_project_id()
    if not project:
        console.print("[red]No project given and no .ikanban/config.yaml found.[/red]")
        console.print("  Run [bold]ikanban init[/bold] first or pass --project.")
        raise typer.Exit(code=1)

    task_id = task_id or f"task-{uuid.uuid4().hex[:8]}"
    console.print(f"[bold]Starting task {task_id}...[/bold]")

    payload: dict = {
        "task_id": task_id,
        "project_id": project,
        "prompt": prompt,
    }
    if title:
        payload["title"] = title
    if start_command:
        payload["start_command"] = start_command

    task = request("POST", "/tasks/", json=payload, timeout=120.0)

    console.print("[green]Task handed to the agent:[/green]")
    print_task_summary(console, task)
    console.print()
    console.print("Run [bold]ikanban status[/bold] to monitor progress")
    console.print("Run [bold]ikanban diff " + task_id + "[/bold] to review changes")
