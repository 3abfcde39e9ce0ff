import typer
import logging
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext, reported_errors

log = logging.getLogger(__name__)


def add_services_logic(app_context: AppContext, timeout: Optional[float] = None):
    """Business logic for enabling more optional services in a running environment."""
    app_context.stack_manager.add_services(timeout=timeout)
    log.info("Services added.")


def add_services(
    ctx: typer.Context,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Give up waiting for the data stores after this many seconds."),
    ] = None,
):
    """Selects additional services, then builds, starts and seeds them."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        add_services_logic(app_context, timeout=timeout)
