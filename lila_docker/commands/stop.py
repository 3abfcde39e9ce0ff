"""
Stop command implementation for lila-docker.

Stops every container in every profile known to compose, including profiles
that are not active in settings.env, so no service is left outside lifecycle
control.
"""

import typer

from ..context import AppContext, reported_errors


def stop_services_logic(app_context: AppContext):
    """Business logic for stopping services."""
    app_context.stack_manager.stop_all()


def stop(ctx: typer.Context):
    """Stops all services across all profiles."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        stop_services_logic(app_context)
