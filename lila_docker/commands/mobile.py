import typer

from ..context import AppContext, reported_errors


def mobile_logic(app_context: AppContext):
    """Business logic for pairing a phone with the mobile service over adb."""
    app_context.stack_manager.pair_mobile()


def mobile(ctx: typer.Context):
    """Pairs and connects a mobile device to the mobile dev service."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        mobile_logic(app_context)
