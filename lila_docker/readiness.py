import time
import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

from .errors import ReadinessTimeout

log = logging.getLogger(__name__)


class ReadinessStatus(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


class ReadinessProbe(BaseModel):
    """
    A check that a service accepts requests, not merely that its process started.

    `check` runs on every tick; `condition`, when set, must also hold.
    """
    service: str
    check: Callable[[], bool]
    interval: float = 1.0
    condition: Optional[Callable[[], bool]] = None
    waiting_message: Optional[str] = None

    @property
    def message(self) -> str:
        return self.waiting_message or f"Waiting for {self.service} to be ready..."

    def is_ready(self) -> bool:
        if not self.check():
            return False
        return self.condition is None or bool(self.condition())


def wait_until_ready(
    probe: ReadinessProbe,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ReadinessStatus:
    """
    Polls the probe until it passes.

    The probe is always attempted at least once, whatever the timeout. Without
    a timeout the wait is unbounded; setting `cancel` stops it early. Each
    failed attempt logs the waiting message once.
    """
    cancel = cancel or threading.Event()
    deadline = None if timeout is None else time.monotonic() + timeout
    attempts = 0

    while True:
        attempts += 1
        if probe.is_ready():
            log.debug(f"{probe.service} ready after {attempts} attempt(s)")
            return ReadinessStatus.READY

        log.info(probe.message)

        if cancel.is_set():
            log.debug(f"Stopped waiting for {probe.service}: cancelled")
            return ReadinessStatus.TIMED_OUT

        delay = probe.interval
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                log.debug(f"Stopped waiting for {probe.service} after {attempts} attempt(s)")
                return ReadinessStatus.TIMED_OUT
            delay = min(delay, remaining)

        # Event.wait doubles as the sleep and wakes up early on cancellation
        if cancel.wait(delay):
            log.debug(f"Stopped waiting for {probe.service}: cancelled")
            return ReadinessStatus.TIMED_OUT


def wait_for_all(
    probes: List[ReadinessProbe],
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ReadinessStatus:
    """Polls independent probes concurrently and returns READY only once every one is ready."""
    if not probes:
        return ReadinessStatus.READY

    cancel = cancel or threading.Event()
    if len(probes) == 1:
        return wait_until_ready(probes[0], timeout, cancel)

    with ThreadPoolExecutor(max_workers=len(probes), thread_name_prefix="readiness") as executor:
        futures = [executor.submit(wait_until_ready, probe, timeout, cancel) for probe in probes]
        try:
            # Returns as soon as any check raises, whichever order they were submitted in
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                future.result()
            results = [future.result() for future in futures]
        except BaseException:
            # Interrupts and check errors release the sibling polls before the executor joins them
            cancel.set()
            raise

    if all(result is ReadinessStatus.READY for result in results):
        return ReadinessStatus.READY
    return ReadinessStatus.TIMED_OUT


def require_ready(
    probes: List[ReadinessProbe],
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
):
    """Like wait_for_all, but raises ReadinessTimeout instead of returning TIMED_OUT."""
    if wait_for_all(probes, timeout, cancel) is not ReadinessStatus.READY:
        services = ", ".join(probe.service for probe in probes)
        raise ReadinessTimeout(f"Gave up waiting for {services} to become ready")
