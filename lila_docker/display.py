import logging
from rich.logging import RichHandler
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typing import List, Optional

from .schemas import EnvironmentState, ServiceState

log = logging.getLogger(__name__)


class Display:
    """
    A centralized display handler for all CLI output.

    LOGGING STANDARDS:

    This module handles structured UI elements (tables, panels) and configures
    the logging system. All other modules use Python's logging system for
    progress messages:

    - DEBUG: Subprocess command lines and their output, internal state (verbose mode only)
    - INFO: Progress of lifecycle verbs, waiting messages from readiness polls
    - WARNING: Skipped optional work (absent optional containers, best-effort steps)
    - ERROR: Failed steps before the error is raised to the command layer

    Commands report a failed verb through error(), which renders the message
    and the suggestion carried by the exception.
    """

    def __init__(self, verbose: bool = False):
        self._console = Console()
        self._verbose = verbose

        # Clear any existing handlers to avoid duplicate logs
        root_logger = logging.getLogger()
        if root_logger.hasHandlers():
            root_logger.handlers.clear()

        logging.basicConfig(
            level="DEBUG" if verbose else "INFO",
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=self._console, rich_tracebacks=True, show_path=verbose, show_level=verbose)]
        )

    @property
    def verbose(self) -> bool:
        """Returns whether verbose mode is enabled."""
        return self._verbose

    def success(self, message: str):
        """Prints a success message."""
        self._console.print(f"[bold green]Success:[/] {message}")

    def error(self, message: str, suggestion: Optional[str] = None):
        """Prints an error message and an optional suggestion."""
        error_panel = Panel(
            f"[bold red]Error:[/] {message}\n"
            + (f"\n[bold]Suggestion:[/] {suggestion}" if suggestion else ""),
            border_style="red",
            expand=False,
        )
        self._console.print(error_panel)

    def panel(self, content: str, title: str, border_style: str = "blue"):
        """Prints content within a styled panel."""
        self._console.print(
            Panel(
                content,
                title=f"[bold]{title}[/bold]",
                border_style=border_style,
                expand=False,
            )
        )

    def status(self, state: EnvironmentState, services: List[ServiceState]):
        """Displays the environment state and one row per container."""
        if not services:
            log.info("No lila-docker services have been created yet. Run `lila-docker start`.")
            return

        table = Table(title=f"lila-docker ({state.value.replace('_', ' ')})")
        table.add_column("Service", style="cyan")
        table.add_column("Container", style="magenta")
        table.add_column("State", style="yellow")
        table.add_column("Health", style="green")

        for service in sorted(services, key=lambda s: s.service):
            table.add_row(
                f"[bold]{service.service}[/bold]",
                service.name or "N/A",
                "✅ running" if service.is_running else f"❌ {service.state or 'unknown'}",
                service.health or "N/A",
            )

        self._console.print(table)
