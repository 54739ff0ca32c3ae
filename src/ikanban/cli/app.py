import typer

from ikanban.cli.commands.init import init
from ikanban.cli.commands.logs import logs
from ikanban.cli.commands.run import run
from ikanban.cli.commands.status import status
from ikanban.cli.commands.tasks import (
    cleanup,
    complete,
    delete,
    diff,
    merge,
    prompt,
    retry,
)

app = typer.Typer(
    name="ikanban",
    help="ikanban - run coding-agent tasks in isolated git worktrees",
    no_args_is_help=True,
)

app.command()(init)
app.command()(run)
app.command()(status)
app.command()(logs)
app.command()(retry)
app.command()(prompt)
app.command()(complete)
app.command()(cleanup)
app.command()(merge)
app.command()(diff)
app.command()(delete)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
