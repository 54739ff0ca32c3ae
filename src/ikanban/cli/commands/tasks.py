import typer
from rich.console import Console

from ikanban.cli.client import request
from ikanban.cli.display import print_diff, print_task_summary

console = Console()


def retry(
    task_id: str = typer.Argument(..., help="Failed task to retry"),
) -> None:
    """Run a failed task again under a new id."""
    task = request("POST", f"/tasks/{task_id}/retry", timeout=120.0)
    console.print(f"[green]Retry started for {task_id}:[/green]")
    print_task_summary(console, task)


def prompt(
    task_id: str = typer.Argument(..., help="Task to send the prompt to"),
    text: str = typer.Argument(..., help="Follow-up prompt"),
) -> None:
    """Send a follow-up prompt to a task's agent session."""
    submission = request(
        "POST", f"/tasks/{task_id}/prompt", json={"prompt": text}, timeout=60.0,
    )
    console.print(f"[green]Prompt sent to session {submission['session_id']}[/green]")


def complete(
    task_id: str = typer.Argument(..., help="Task under review"),
) -> None:
    """Mark a task under review as completed without merging."""
    task = request("POST", f"/tasks/{task_id}/complete")
    print_task_summary(console, task)


def cleanup(
    task_id: str = typer.Argument(..., help="Task whose worktree to clean up"),
    keep: bool = typer.Option(False, "--keep", help="Keep the worktree on disk"),
) -> None:
    """Remove (or keep) a task's worktree."""
    body = {"policy": "keep"} if keep else {"policy": "remove"}
    result = request("POST", f"/tasks/{task_id}/cleanup", json=body, timeout=60.0)

    if result["removed"]:
        console.print(f"[green]Removed worktree {result['worktree_directory']}[/green]")
    elif result.get("worktree_directory"):
        console.print(f"Kept worktree {result['worktree_directory']}")
    else:
        console.print("[dim]Task has no worktree.[/dim]")


def merge(
    task_id: str = typer.Argument(..., help="Task to merge"),
) -> None:
    """Squash-merge a task's worktree into the project branch."""
    result = request("POST", f"/tasks/{task_id}/merge", timeout=60.0)

    if result["merged"]:
        console.print(
            f"[green]Merged {result['branch']} into {result['default_branch']}[/green] "
            f"as [bold]{result['commit_hash'][:12]}[/bold]"
        )
    else:
        console.print(
            f"[yellow]Nothing to merge from {result['branch']} "
            f"into {result['default_branch']}.[/yellow]"
        )


def diff(
    task_id: str = typer.Argument(..., help="Task to diff"),
) -> None:
    """Show the pending change set of a task's worktree."""
    print_diff(console, request("GET", f"/tasks/{task_id}/diff", timeout=30.0))


def delete(
    task_id: str = typer.Argument(..., help="Completed or failed task"),
) -> None:
    """Forget a finished task."""
    request("DELETE", f"/tasks/{task_id}")
    console.print(f"Deleted task {task_id}")
