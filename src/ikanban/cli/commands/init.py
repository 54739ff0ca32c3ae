from pathlib import Path

import httpx
import typer
import yaml
from rich.console import Console

from ikanban.cli.client import DEFAULT_URL

console = Console()


def _default_config(project_id: str, project_name: str, url: str) -> dict:
    return {
        "project": {
            "id": project_id,
            "name": project_name,
        },
        "orchestrator": {
            "url": url,
        },
    }


def init(
    path: Path = typer.Argument(
        Path("."),
        help="Git repository to initialize (defaults to current directory)",
    ),
    project_id: str | None = typer.Option(
        None, "--id", help="Project id (defaults to the directory name)",
    ),
    url: str = typer.Option(DEFAULT_URL, "--url", help="Orchestrator URL"),
) -> None:
    """Initialize ikanban in a project directory and register it.

    Running it again on an initialized project only retries registration.
    """
    project_dir = path.resolve()
    config_path = project_dir / ".ikanban" / "config.yaml"

    if not (project_dir / ".git").exists():
        console.print(f"[red]{project_dir} is not a git repository.[/red]")
        raise typer.Exit(code=1)

    if config_path.exists():
        console.print("[yellow]Already initialized.[/yellow]")
        config = yaml.safe_load(config_path.read_text()) or {}
    else:
        config = _default_config(project_id or project_dir.name, project_dir.name, url)
        config_path.parent.mkdir()
        config_path.write_text(yaml.dump(config, default_flow_style=False))
        console.print(f"[green]Initialized ikanban in {project_dir}[/green]")
        console.print("  Created .ikanban/config.yaml")

    project = config.get("project") or {}
    url = (config.get("orchestrator") or {}).get("url") or url
    try:
        with httpx.Client(base_url=url, timeout=10.0) as client:
            resp = client.post(
                "/projects/",
                json={
                    "id": project.get("id") or project_dir.name,
                    "root_directory": str(project_dir),
                    "name": project.get("name"),
                },
            )
            resp.raise_for_status()
        console.print(f"  Registered project [cyan]{resp.json()['id']}[/cyan]")
    except httpx.ConnectError:
        console.print(
            f"[yellow]Orchestrator not reachable at {url}; "
            "run [bold]ikanban init[/bold] again once it is up.[/yellow]"
        )
    except httpx.HTTPStatusError as e:
        console.print(f"[yellow]Project not registered: {e.response.text}[/yellow]")

    console.print('  Run [bold]ikanban run "your task"[/bold] to begin')
