import typer

from ..context import AppContext, reported_errors


def ui_logic(app_context: AppContext):
    """Business logic for a clean rebuild of the js/css assets."""
    app_context.stack_manager.compile_ui(clean=True)


def ui(ctx: typer.Context):
    """Rebuilds all UI assets from scratch."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        ui_logic(app_context)
