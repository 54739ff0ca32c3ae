import os
from pathlib import Path
from typing import Any

import httpx
import typer
import yaml
from rich.console import Console

console = Console()

DEFAULT_URL = "http://localhost:8420"
CONFIG_PATH = Path(".ikanban/config.yaml")


def load_config() -> dict:
    """Load .ikanban/config.yaml if it exists."""
    if CONFIG_PATH.exists():
        return yaml.safe_load(CONFIG_PATH.read_text()) or {}
    return {}


def get_orchestrator_url() -> str:
    """Discover orchestrator URL from env, config, or default."""
    url = os.environ.get("IKANBAN_ORCHESTRATOR_URL")
    if url:
        return url

    url = (load_config().get("orchestrator") or {}).get("url")
    if url:
        return url

    return DEFAULT_URL


def get_project_id() -> str | None:
    return (load_config().get("project") or {}).get("id")


def request(
    method: str,
    path: str,
    *,
    timeout: float = 10.0,
    **kwargs: Any,
) -> Any:
    """Call the orchestrator and return the decoded JSON body.

    Connection and HTTP errors are printed and turned into a non-zero exit.
    """
    url = get_orchestrator_url()
    try:
        with httpx.Client(base_url=url, timeout=timeout) as client:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
    except httpx.ConnectError:
        console.print(f"[red]Cannot connect to orchestrator at {url}[/red]")
        console.print("  Is the orchestrator running? Try: [bold]ikanban-server[/bold]")
        raise typer.Exit(code=1) from None
    except httpx.HTTPStatusError as e:
        console.print(f"[red]Error: {e.response.status_code} {_detail(e.response)}[/red]")
        raise typer.Exit(code=1) from None

    if not response.content:
        return None
    return response.json()


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except (ValueError, AttributeError):
        return response.text
