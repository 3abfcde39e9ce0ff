"""
Maintenance passthroughs for the lila service: `lila clean` and `lila restart`.
"""

import typer

from ..context import AppContext, VerbGroup, reported_errors

app = typer.Typer(help="Maintenance commands for the lila service.", cls=VerbGroup)


@app.command()
def clean(ctx: typer.Context):
    """Removes lila's compiled build output."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        app_context.stack_manager.clean_lila()


@app.command()
def restart(ctx: typer.Context):
    """Restarts the lila container."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        app_context.stack_manager.restart_lila()
