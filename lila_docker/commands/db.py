"""
Db command implementation for lila-docker.

Re-seeds the database whatever SETUP_DATABASE says in settings.env. The
override only applies to this invocation; settings.env is not modified.
The seed drops the existing database first.
"""

import typer
import logging
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext, reported_errors

log = logging.getLogger(__name__)


def setup_database_logic(app_context: AppContext, timeout: Optional[float] = None):
    """Business logic for forced database seeding."""
    settings = app_context.config.settings.with_values(SETUP_DATABASE="true")
    log.warning("Dropping and re-seeding the lichess database...")
    app_context.stack_manager.seed_database(settings=settings, timeout=timeout)
    app_context.display.success("Database setup complete.")


def db(
    ctx: typer.Context,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Give up waiting for the data stores after this many seconds."),
    ] = None,
):
    """Drops and re-seeds the database (destructive)."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        setup_database_logic(app_context, timeout=timeout)
