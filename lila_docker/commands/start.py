"""
Start command implementation for lila-docker.

`start` converges any prior state to a running environment: a fresh checkout
gets the full setup pipeline, a stopped environment is resumed across every
profile, and a running one is left alone.

## Execution Flow Diagram

```mermaid
sequenceDiagram
    participant CLI as CLI
    participant Start as start.py
    participant SM as stack_manager.py<br/>(StackManager)
    participant DC as docker_client.py<br/>(DockerClient)
    participant SP as pipeline.py<br/>(SetupPipeline)
    participant Docker as subprocess

    CLI->>Start: lila-docker start [--timeout N]
    Start->>SM: classify_environment()
    SM->>DC: ensure_engine()
    Note over DC: SupervisorError if the daemon is down,<br/>never treated as "uninitialized"
    SM->>DC: list_services()
    DC->>Docker: docker compose ps --all --format json
    Docker-->>DC: [{Service, State}, ...]
    SM-->>Start: EnvironmentState

    alt UNINITIALIZED (no services)
        Start->>SP: SetupPipeline(stack_manager).run()
        Note over SP: identity → helper setup → build → up →<br/>ui → bbpPairings? → seed? → welcome
    else RESUMABLE (some services exited)
        Start->>SM: resume()
        SM->>DC: config_profiles()
        SM->>DC: start(all profiles)
        DC->>Docker: COMPOSE_PROFILES=a,b,... docker compose start
    else NOTHING_TO_RESUME
        Start->>Start: log.info("There are no stopped services to resume")
    end
```
"""

import typer
import logging
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext, reported_errors
from ..pipeline import SetupPipeline
from ..schemas import EnvironmentState

log = logging.getLogger(__name__)


def start_services_logic(app_context: AppContext, timeout: Optional[float] = None) -> EnvironmentState:
    """Business logic for bringing the environment up."""
    stack_manager = app_context.stack_manager
    state = stack_manager.classify_environment()

    if state is EnvironmentState.UNINITIALIZED:
        SetupPipeline(stack_manager, readiness_timeout=timeout).run()
    elif state is EnvironmentState.RESUMABLE:
        stack_manager.resume()
    else:
        log.info("There are no stopped services to resume")

    return state


def start(
    ctx: typer.Context,
    timeout: Annotated[
        Optional[float],
        typer.Option(
            "--timeout",
            help="Give up waiting for the data stores after this many seconds (default: wait forever).",
        ),
    ] = None,
):
    """Starts the environment, running first-time setup when needed."""
    app_context: AppContext = ctx.obj
    with reported_errors(app_context):
        start_services_logic(app_context, timeout=timeout)
