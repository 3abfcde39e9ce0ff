"""
Setup pipeline for a fresh lila-docker environment.

## Step Order

```mermaid
flowchart TD
    A[write-identity<br/>.env: USER_ID, GROUP_ID] --> B[generate-settings<br/>helper setup, reload settings.env]
    B --> C[build-images<br/>compose build, default + utils]
    C --> D[start-containers<br/>compose up -d]
    D --> E[compile-ui<br/>ui build --update]
    E --> F{SETUP_BBPAIRINGS}
    F -->|true| G[build-pairing-engine]
    F -->|false| H
    G --> H{SETUP_DATABASE}
    H -->|true| I[seed-database<br/>wait mongodb + elasticsearch?<br/>spamdb, indexes, trophies, fixup]
    H -->|false| J
    I --> J[welcome<br/>best effort]
```

Every step is fail-fast except `welcome`. A disabled step is logged and
skipped. Settings are re-read before each step, so everything after
`generate-settings` sees what the helper wrote. The whole pipeline can be
re-run from the top after a failure.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel

from .errors import LilaDockerError
from .schemas import StackSettings

log = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    FAIL_FAST = "fail_fast"
    BEST_EFFORT = "best_effort"


def _always(settings: StackSettings) -> bool:
    return True


class PipelineStep(BaseModel):
    name: str
    description: str
    operation: Callable[[], object]
    enabled: Callable[[StackSettings], bool] = _always
    policy: FailurePolicy = FailurePolicy.FAIL_FAST


class StepResult(BaseModel):
    name: str
    status: Literal["completed", "skipped", "failed"]
    error: Optional[str] = None


def run_steps(steps: List[PipelineStep], settings_provider: Callable[[], StackSettings]) -> List[StepResult]:
    """
    Runs steps strictly in order.

    A fail-fast step's error propagates and nothing after it runs. A
    best-effort step's error is logged as a warning and recorded.
    """
    results = []
    for step in steps:
        if not step.enabled(settings_provider()):
            log.info(f"Skipping {step.description}")
            results.append(StepResult(name=step.name, status="skipped"))
            continue

        log.debug(f"Running step '{step.name}'")
        try:
            step.operation()
        except LilaDockerError as e:
            if step.policy is FailurePolicy.FAIL_FAST:
                log.error(f"Step '{step.name}' failed, aborting")
                raise
            log.warning(f"Skipping {step.description}: {e}")
            results.append(StepResult(name=step.name, status="failed", error=str(e)))
            continue

        results.append(StepResult(name=step.name, status="completed"))
    return results


class SetupPipeline:
    """The ordered first-time setup of the environment."""

    def __init__(
        self,
        stack_manager,
        readiness_timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.stack_manager = stack_manager
        self.readiness_timeout = readiness_timeout
        self.cancel = cancel

    def steps(self) -> List[PipelineStep]:
        sm = self.stack_manager
        return [
            PipelineStep(
                name="write-identity",
                description="machine identity",
                operation=sm.write_identity,
            ),
            PipelineStep(
                name="generate-settings",
                description="settings generation",
                operation=sm.generate_settings,
            ),
            PipelineStep(
                name="build-images",
                description="image build",
                operation=sm.build_images,
            ),
            PipelineStep(
                name="start-containers",
                description="container start",
                operation=sm.start_containers,
            ),
            PipelineStep(
                name="compile-ui",
                description="UI compilation",
                operation=sm.compile_ui,
            ),
            PipelineStep(
                name="build-pairing-engine",
                description="bbpPairings build",
                operation=sm.build_pairing_engine,
                enabled=lambda settings: settings.setup_bbpairings,
            ),
            PipelineStep(
                name="seed-database",
                description="database setup",
                operation=lambda: sm.seed_database(timeout=self.readiness_timeout, cancel=self.cancel),
                enabled=lambda settings: settings.setup_database,
            ),
            PipelineStep(
                name="welcome",
                description="welcome message",
                operation=sm.welcome,
                policy=FailurePolicy.BEST_EFFORT,
            ),
        ]

    def run(self) -> List[StepResult]:
        log.info("Setting up a new lila-docker environment...")
        results = run_steps(self.steps(), lambda: self.stack_manager.config.settings)
        log.info("Setup complete.")
        return results
