from datetime import datetime

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

STATE_ICONS = {
    "queued": "[ ]",
    "creating_worktree": "[.]",
    "running": "[>]",
    "review": "[?]",
    "cleaning": "[~]",
    "completed": "[v]",
    "failed": "[x]",
}

STATE_COLORS = {
    "queued": "dim",
    "creating_worktree": "yellow",
    "running": "green",
    "review": "cyan",
    "cleaning": "yellow",
    "completed": "green",
    "failed": "red",
}

LEVEL_COLORS = {
    "info": "white",
    "warn": "yellow",
    "error": "red",
}


def format_time(timestamp_ms: int | None) -> str:
    if not timestamp_ms:
        return "-"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


def render_task_table(console: Console, tasks: list[dict]) -> None:
    """Render tasks as a Rich table, oldest first."""
    if not tasks:
        console.print("[dim]No tasks yet.[/dim]")
        return

    table = Table(title="Tasks", show_header=True, title_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Project")
    table.add_column("Title", max_width=40)
    table.add_column("State")
    table.add_column("Session", style="dim")
    table.add_column("Updated", style="dim")

    for task in tasks:
        state = task.get("state", "unknown")
        color = STATE_COLORS.get(state, "white")
        state_str = f"{STATE_ICONS.get(state, '[ ]')} [{color}]{state}[/{color}]"

        error = task.get("error")
        if error:
            # Keep the table readable
            if len(error) > 80:
                error = error[:77] + "..."
            state_str += f"\n [dim]{error}[/dim]"

        table.add_row(
            task["task_id"],
            task.get("project_id", "-"),
            (task.get("title") or task.get("prompt") or "")[:40],
            state_str,
            task.get("session_id") or "-",
            format_time(task.get("updated_at")),
        )
    console.print(table)


def print_task_summary(console: Console, task: dict) -> None:
    state = task.get("state", "unknown")
    color = STATE_COLORS.get(state, "white")
    console.print(f"  Task: [cyan]{task['task_id']}[/cyan]")
    console.print(f"  State: [{color}]{state}[/{color}]")
    if task.get("worktree_directory"):
        console.print(f"  Worktree: {task['worktree_directory']}")
    if task.get("session_id"):
        console.print(f"  Session: {task['session_id']}")
    if task.get("error"):
        console.print(f"  [red]Error: {task['error']}[/red]")


def print_log_entry(console: Console, entry: dict) -> None:
    level = entry.get("level", "info")
    color = LEVEL_COLORS.get(level, "white")
    parts = [f"[dim]#{entry.get('sequence', '?')}[/dim]"]
    if entry.get("task_id"):
        parts.append(f"[cyan]{entry['task_id']}[/cyan]")
    parts.append(f"[{color}]{entry.get('message', '')}[/{color}]")
    console.print(" ".join(parts))


def print_diff(console: Console, diff: dict) -> None:
    console.print(
        f"[bold]{diff['branch']}[/bold] vs [bold]{diff['default_branch']}[/bold] "
        f"[dim]({diff['mode']})[/dim]"
    )
    if not diff.get("diff", "").strip():
        console.print("[dim]No changes.[/dim]")
        return
    console.print(Syntax(diff["diff"], "diff", theme="ansi_dark"))
