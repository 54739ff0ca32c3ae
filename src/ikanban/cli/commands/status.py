import time

import httpx
import typer
from rich.console import Console
from rich.live import Live
from rich.text import Text

from ikanban.cli.client import get_orchestrator_url, request
from ikanban.cli.display import render_task_table

console = Console()


def status(
    project: str | None = typer.Option(None, "--project", "-p", help="Only this project"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Live updating status"),
) -> None:
    """Show tasks and their lifecycle state."""
    params = {"project_id": project} if project else {}

    if watch:
        _watch_status(params)
        return

    render_task_table(console, request("GET", "/tasks/", params=params))


def _watch_status(params: dict) -> None:
    """Poll status periodically with a live display."""
    url = get_orchestrator_url()
    try:
        with Live(console=console, refresh_per_second=1) as live:
            while True:
                try:
                    with httpx.Client(base_url=url, timeout=10.0) as client:
                        tasks = client.get("/tasks/", params=params).json()
                    live.update(_task_renderable(tasks))
                except httpx.ConnectError:
                    live.update("[red]Connection lost. Retrying...[/red]")
                time.sleep(2)
    except KeyboardInterrupt:
        pass


def _task_renderable(tasks: list[dict]) -> Text:
    from io import StringIO

    buf = StringIO()
    tmp = Console(file=buf, force_terminal=True, width=console.width)
    render_task_table(tmp, tasks)
    return Text.from_ansi(buf.getvalue())
