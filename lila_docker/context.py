import sys
import logging
from contextlib import contextmanager
from pathlib import Path

import typer
from typer.core import TyperGroup

from .config import Config
from .display import Display
from .errors import LilaDockerError
from .stack_manager import StackManager

log = logging.getLogger(__name__)

class AppContext:
    """A central container for the application's runtime state."""

    def __init__(self, verbose: bool = False, project_dir: Path = Path(".")):
        try:
            self.display = Display(verbose=verbose)
            self.config = Config(self.display, project_dir)
            self.stack_manager = StackManager(self.config, self.display)
        except LilaDockerError as e:
            log.debug("Failed to initialize application", exc_info=True)
            self.display.error(e.message, e.suggestion)
            sys.exit(1)
        except Exception as e:
            log.error(f"Failed to initialize application: {e}", exc_info=True)
            sys.exit(1)

    @property
    def verbose(self) -> bool:
        return self.display.verbose


@contextmanager
def reported_errors(app_context: AppContext):
    """Turns a LilaDockerError into an error panel and exit code 1."""
    try:
        yield
    except LilaDockerError as e:
        log.debug("Verb failed", exc_info=True)
        app_context.display.error(e.message, e.suggestion)
        raise typer.Exit(1)


class VerbGroup(TyperGroup):
    """A command group that reports an unknown verb with exit code 1."""

    def resolve_command(self, ctx: typer.Context, args):
        name = args[0] if args else None
        # Option-like tokens are left to the parser's own usage errors
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            typer.echo(ctx.get_usage(), err=True)
            typer.echo(f"Try '{ctx.command_path} --help' for help.", err=True)
            typer.echo(f"\nError: No such command '{name}'.", err=True)
            raise typer.Exit(1)
        return super().resolve_command(ctx, args)
