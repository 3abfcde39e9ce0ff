import typer

from ..context import AppContext, reported_errors


def status(ctx: typer.Context):
    """Shows the environment state and every container of the project."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        state, services = app_context.stack_manager.environment_status()
        app_context.display.status(state, services)
