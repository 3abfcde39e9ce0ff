import typer

from ..context import AppContext, reported_errors


def hostname_logic(app_context: AppContext):
    """Business logic for switching the hostname lila is served on."""
    app_context.stack_manager.regenerate_hostname()
    url = app_context.config.settings.get("LILA_URL")
    if url:
        app_context.display.panel(f"lila is now available at {url}", title="Hostname updated", border_style="green")


def hostname(ctx: typer.Context):
    """Regenerates hostname-dependent settings and recreates the web-facing services."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        hostname_logic(app_context)
