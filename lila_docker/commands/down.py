"""
Down command implementation for lila-docker.

Removes every container and named volume across all profiles. The next
`start` sees an uninitialized environment and runs the full setup again.
"""

import typer
import logging

from ..context import AppContext, reported_errors

log = logging.getLogger(__name__)


def down_services_logic(app_context: AppContext):
    """Business logic for tearing the environment down."""
    log.warning("Removing all containers and volumes. Database contents will be lost.")
    app_context.stack_manager.down_all()


def down(ctx: typer.Context):
    """Stops and removes all services and their volumes."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        down_services_logic(app_context)
