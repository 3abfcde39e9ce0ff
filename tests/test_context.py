from unittest.mock import MagicMock, patch
from pathlib import Path

import pytest
import typer

from lila_docker.context import AppContext, reported_errors
from lila_docker.errors import ConfigurationError, SeedingError


@patch('lila_docker.context.StackManager')
@patch('lila_docker.context.Config')
@patch('lila_docker.context.Display')
def test_app_context_wires_components(MockDisplay, MockConfig, MockStackManager):
    MockDisplay.return_value.verbose = True

    ctx = AppContext(verbose=True, project_dir=Path("/work"))

    MockDisplay.assert_called_once_with(verbose=True)
    MockConfig.assert_called_once_with(MockDisplay.return_value, Path("/work"))
    MockStackManager.assert_called_once_with(MockConfig.return_value, MockDisplay.return_value)
    assert ctx.verbose is True


@patch('lila_docker.context.StackManager')
@patch('lila_docker.context.Config')
@patch('lila_docker.context.Display')
def test_app_context_init_failure_exits(MockDisplay, MockConfig, MockStackManager):
    """Tests that an unreadable settings file aborts before any verb runs."""
    MockConfig.side_effect = ConfigurationError("Could not read settings.env", suggestion="Fix it.")

    with pytest.raises(SystemExit) as exc_info:
        AppContext()

    assert exc_info.value.code == 1
    MockDisplay.return_value.error.assert_called_once_with("Could not read settings.env", "Fix it.")
    MockStackManager.assert_not_called()


def test_reported_errors_renders_and_exits():
    app_context = MagicMock()

    with pytest.raises(typer.Exit) as exc_info:
        with reported_errors(app_context):
            raise SeedingError("spamdb.py failed")

    assert exc_info.value.exit_code == 1
    app_context.display.error.assert_called_once_with(
        "spamdb.py failed", SeedingError.default_suggestion
    )


def test_reported_errors_custom_suggestion():
    app_context = MagicMock()

    with pytest.raises(typer.Exit):
        with reported_errors(app_context):
            raise ConfigurationError("bad", suggestion="Fix it.")

    app_context.display.error.assert_called_once_with("bad", "Fix it.")


def test_reported_errors_passes_other_exceptions():
    app_context = MagicMock()

    with pytest.raises(KeyError):
        with reported_errors(app_context):
            raise KeyError("x")

    app_context.display.error.assert_not_called()
