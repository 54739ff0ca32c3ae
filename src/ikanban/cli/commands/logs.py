import asyncio
import contextlib

import typer
from rich.console import Console

from ikanban.cli.client import get_orchestrator_url, request
from ikanban.cli.display import print_log_entry
from ikanban.models.events import RuntimeEvent
from ikanban.orchestrator.services.event_bus import to_log_entry

console = Console()


def logs(
    limit: int = typer.Option(50, "--limit", "-n", help="Number of log entries"),
    task: str | None = typer.Option(None, "--task", help="Only entries for this task"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow log output"),
) -> None:
    """View orchestrator activity logs."""
    if follow:
        _follow_logs(get_orchestrator_url(), task)
        return

    params: dict = {"limit": limit}
    if task:
        params["task_id"] = task
    entries = request("GET", "/logs/", params=params)

    if not entries:
        console.print("[dim]No log entries yet.[/dim]")
        return

    # Served newest-first, reverse for display
    for entry in reversed(entries):
        print_log_entry(console, entry)


def _follow_logs(url: str, task: str | None) -> None:
    """Stream bus events via WebSocket and print their log projection."""
    from ikanban.cli.ws_client import stream_events, to_ws_url

    ws_url = to_ws_url(url)

    async def _stream() -> None:
        console.print(f"[dim]Connecting to {ws_url}...[/dim]")
        try:
            async for raw in stream_events(ws_url):
                entry = to_log_entry(RuntimeEvent.model_validate(raw))
                if task and entry.task_id != task:
                    continue
                print_log_entry(console, entry.model_dump(mode="json"))
        except Exception as e:
            console.print(f"[red]WebSocket error: {e}[/red]")

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_stream())
