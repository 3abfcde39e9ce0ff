"""
Format command implementation for lila-docker.

Runs the code formatters of each sub-project in its container. Optional
services (chessground, pgn-viewer) are often absent; their formatter failing
is reported as a warning and never fails the command.
"""

import typer
import logging
from typing import Dict

from ..context import AppContext, reported_errors

log = logging.getLogger(__name__)


def format_code_logic(app_context: AppContext) -> Dict[str, bool]:
    """Business logic for the formatting pass."""
    results = app_context.stack_manager.format_code()
    formatted = [name for name, ok in results.items() if ok]
    if formatted:
        log.info(f"Formatted: {', '.join(formatted)}")
    else:
        log.warning("No formatter ran. Are the containers up?")
    return results


def format(ctx: typer.Context):
    """Runs the code formatters, skipping containers that are not available."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        format_code_logic(app_context)
