import typer
from pathlib import Path
from typing_extensions import Annotated
from .context import AppContext, VerbGroup
from .commands.start import start
from .commands.stop import stop
from .commands.restart import restart
from .commands.down import down
from .commands.build import build
from .commands.format import format
from .commands.hostname import hostname
from .commands.mobile import mobile
from .commands.db import db
from .commands.ui import ui
from .commands.add_services import add_services
from .commands.status import status
from .commands.lila import app as lila_app
from .commands.helper import gitpod_app, flutter

app = typer.Typer(
    help="Manage the lila-docker development environment.",
    cls=VerbGroup,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command()(start)
app.command()(stop)
app.command()(restart)
app.command()(down)
app.command()(build)
app.command()(format)
app.command()(hostname)
app.command()(mobile)
app.command()(db)
app.command()(ui)
app.command("add-services")(add_services)
app.command()(status)
app.command()(flutter)
app.add_typer(lila_app, name="lila")
app.add_typer(gitpod_app, name="gitpod")

@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output for debugging.",
        ),
    ] = False,
    project_dir: Annotated[
        Path,
        typer.Option(
            "--project-dir",
            help="The lila-docker checkout holding docker-compose.yml and settings.env.",
            file_okay=False,
        ),
    ] = Path("."),
):
    """
    Initialize the AppContext and attach it to the Typer context.
    """
    # A bare invocation only prints help, without touching Docker
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
    ctx.obj = AppContext(verbose=verbose, project_dir=project_dir)

if __name__ == "__main__":
    app()
