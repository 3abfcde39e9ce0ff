"""
Informational helper flows passed straight through: `gitpod public` and `flutter`.
"""

import typer

from ..context import AppContext, VerbGroup, reported_errors

gitpod_app = typer.Typer(help="Gitpod workspace helpers.", cls=VerbGroup)


@gitpod_app.command()
def public(ctx: typer.Context):
    """Prints how to make the Gitpod workspace ports public."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        app_context.stack_manager.run_helper("gitpod_public")


def flutter(ctx: typer.Context):
    """Prints the flutter run command for the lichess mobile app."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        app_context.stack_manager.run_helper("flutter")
