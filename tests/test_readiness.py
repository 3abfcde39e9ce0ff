import logging
import threading
from unittest.mock import MagicMock

import pytest

from lila_docker.errors import ReadinessTimeout, SupervisorError
from lila_docker.readiness import (
    ReadinessProbe,
    ReadinessStatus,
    require_ready,
    wait_for_all,
    wait_until_ready,
)


def _no_sleep_cancel():
    """An Event stand-in whose wait() returns immediately without being set."""
    cancel = MagicMock()
    cancel.is_set.return_value = False
    cancel.wait.return_value = False
    return cancel


def test_ready_on_first_attempt(caplog):
    check = MagicMock(return_value=True)
    probe = ReadinessProbe(service="mongodb", check=check)

    with caplog.at_level(logging.INFO, logger="lila_docker.readiness"):
        status = wait_until_ready(probe)

    assert status is ReadinessStatus.READY
    check.assert_called_once()
    assert "Waiting for" not in caplog.text


def test_ready_after_retries_logs_once_per_attempt(caplog):
    check = MagicMock(side_effect=[False, False, False, True])
    probe = ReadinessProbe(service="mongodb", check=check, waiting_message="Waiting for mongodb to be ready...")
    cancel = _no_sleep_cancel()

    with caplog.at_level(logging.INFO, logger="lila_docker.readiness"):
        status = wait_until_ready(probe, cancel=cancel)

    assert status is ReadinessStatus.READY
    assert check.call_count == 4
    waiting = [r for r in caplog.records if r.getMessage() == "Waiting for mongodb to be ready..."]
    assert len(waiting) == 3


def test_waits_for_the_probe_interval():
    check = MagicMock(side_effect=[False, True])
    probe = ReadinessProbe(service="elasticsearch", check=check, interval=2.0)
    cancel = _no_sleep_cancel()

    wait_until_ready(probe, cancel=cancel)

    cancel.wait.assert_called_once_with(2.0)


def test_zero_timeout_still_attempts_once():
    check = MagicMock(return_value=False)
    probe = ReadinessProbe(service="mongodb", check=check)

    status = wait_until_ready(probe, timeout=0)

    assert status is ReadinessStatus.TIMED_OUT
    check.assert_called_once()


def test_timeout_expires():
    check = MagicMock(return_value=False)
    probe = ReadinessProbe(service="mongodb", check=check, interval=0.01)

    status = wait_until_ready(probe, timeout=0.05)

    assert status is ReadinessStatus.TIMED_OUT
    assert check.call_count >= 2


def test_condition_must_hold():
    check = MagicMock(return_value=True)
    condition = MagicMock(side_effect=[False, True])
    probe = ReadinessProbe(service="elasticsearch", check=check, condition=condition)

    status = wait_until_ready(probe, cancel=_no_sleep_cancel())

    assert status is ReadinessStatus.READY
    assert condition.call_count == 2


def test_condition_skipped_when_check_fails():
    check = MagicMock(return_value=False)
    condition = MagicMock(return_value=True)
    probe = ReadinessProbe(service="elasticsearch", check=check, condition=condition)

    wait_until_ready(probe, timeout=0)

    condition.assert_not_called()


def test_cancelled_before_start():
    check = MagicMock(return_value=False)
    probe = ReadinessProbe(service="mongodb", check=check)
    cancel = threading.Event()
    cancel.set()

    status = wait_until_ready(probe, cancel=cancel)

    assert status is ReadinessStatus.TIMED_OUT
    check.assert_called_once()


def test_cancelled_while_waiting():
    check = MagicMock(return_value=False)
    probe = ReadinessProbe(service="mongodb", check=check, interval=30.0)
    cancel = MagicMock()
    cancel.is_set.return_value = False
    cancel.wait.return_value = True

    status = wait_until_ready(probe, cancel=cancel)

    assert status is ReadinessStatus.TIMED_OUT
    check.assert_called_once()


def test_default_message():
    probe = ReadinessProbe(service="redis", check=lambda: True)
    assert probe.message == "Waiting for redis to be ready..."


def test_wait_for_all_empty():
    assert wait_for_all([]) is ReadinessStatus.READY


def test_wait_for_all_concurrent_probes_ready():
    mongo = ReadinessProbe(service="mongodb", check=MagicMock(side_effect=[False, True]), interval=0.01)
    search = ReadinessProbe(service="elasticsearch", check=MagicMock(side_effect=[False, False, True]), interval=0.01)

    status = wait_for_all([mongo, search], timeout=5)

    assert status is ReadinessStatus.READY


def test_wait_for_all_one_probe_times_out():
    mongo = ReadinessProbe(service="mongodb", check=lambda: True)
    search = ReadinessProbe(service="elasticsearch", check=lambda: False, interval=0.01)

    status = wait_for_all([mongo, search], timeout=0.05)

    assert status is ReadinessStatus.TIMED_OUT


def test_wait_for_all_probe_error_propagates():
    def broken():
        raise RuntimeError("probe exploded")

    mongo = ReadinessProbe(service="mongodb", check=broken)
    search = ReadinessProbe(service="elasticsearch", check=lambda: False, interval=0.01)
    cancel = threading.Event()

    with pytest.raises(RuntimeError):
        wait_for_all([mongo, search], cancel=cancel)

    assert cancel.is_set()


def test_require_ready_raises():
    probe = ReadinessProbe(service="mongodb", check=lambda: False)

    with pytest.raises(ReadinessTimeout) as exc_info:
        require_ready([probe], timeout=0)

    assert "mongodb" in str(exc_info.value)


def test_require_ready_passes():
    probe = ReadinessProbe(service="mongodb", check=lambda: True)
    require_ready([probe], timeout=0)


def test_wait_for_all_later_check_error_stops_earlier_poll():
    """Tests that an error in the second check ends an unbounded wait on the first."""
    def search_down():
        raise SupervisorError("service \"elasticsearch\" is not running")

    mongo = ReadinessProbe(service="mongodb", check=lambda: False, interval=0.01)
    search = ReadinessProbe(service="elasticsearch", check=search_down)
    cancel = threading.Event()

    with pytest.raises(SupervisorError):
        wait_for_all([mongo, search], cancel=cancel)

    assert cancel.is_set()
