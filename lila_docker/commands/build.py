import typer
import logging

from ..context import AppContext, reported_errors

log = logging.getLogger(__name__)


def build_images_logic(app_context: AppContext):
    """Business logic for pre-pulling and pre-building every image."""
    app_context.stack_manager.build_all()
    log.info("All images are up to date.")


def build(ctx: typer.Context):
    """Pulls and builds the images for all profiles."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        build_images_logic(app_context)
