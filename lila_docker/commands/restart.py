"""
Restart command implementation for lila-docker.

A full stop across all profiles followed by `start`. After the stop every
container is exited, so `start` resumes them instead of re-running setup.
"""

import typer
import logging
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext, reported_errors
from .start import start_services_logic
from .stop import stop_services_logic

log = logging.getLogger(__name__)


def restart_services_logic(app_context: AppContext, timeout: Optional[float] = None):
    """Business logic for restarting services."""
    log.info("Restarting lila-docker...")

    stop_services_logic(app_context)
    start_services_logic(app_context, timeout=timeout)

    log.info("lila-docker restarted successfully.")


def restart(
    ctx: typer.Context,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Readiness timeout in seconds, used if setup has to run."),
    ] = None,
):
    """Stops and then starts all services."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        restart_services_logic(app_context, timeout=timeout)
