"""
End-to-end verb flows through the real AppContext, Config, StackManager and
SetupPipeline. Only the container engine and the native helper are replaced.
"""

from pathlib import Path
from unittest.mock import call, patch

import pytest
from dotenv import dotenv_values
from typer.testing import CliRunner

from lila_docker.errors import SupervisorError
from lila_docker.main import app
from lila_docker.schemas import HostCapabilities, ServiceState, SettingsDelta
from lila_docker.stack_manager import MONGO_PING, POST_SEED_SCRIPTS

runner = CliRunner()


@pytest.fixture
def environment(tmp_path: Path):
    """
    Patches the engine and the helper. The fake helper's `setup` flow writes
    `env.settings_text` to settings.env, like the real one does.
    """
    with patch('lila_docker.stack_manager.DockerClient') as MockDockerClient, \
         patch('lila_docker.stack_manager.HelperClient') as MockHelperClient, \
         patch('lila_docker.stack_manager.detect_host_capabilities',
               return_value=HostCapabilities(system="Linux", machine="x86_64", has_cargo=True)):
        docker_client = MockDockerClient.return_value
        docker_client.list_services.return_value = []
        docker_client.config_profiles.return_value = {"utils", "search", "mobile"}
        docker_client.exec_ok.return_value = True
        helper = MockHelperClient.return_value

        class Env:
            project_dir = tmp_path
            docker = docker_client
            helper_client = helper
            settings_text = "SETUP_DATABASE=false\n"

        def fake_helper_run(subcommand, *args, require_settings=False):
            if subcommand == "setup":
                (tmp_path / "settings.env").write_text(Env.settings_text)
            config = MockHelperClient.call_args.args[0]
            config.reload(required=require_settings)
            return SettingsDelta()

        helper.run.side_effect = fake_helper_run
        yield Env


def _invoke(env, *args):
    return runner.invoke(app, ["--project-dir", str(env.project_dir), *args])


def test_fresh_start_runs_setup(environment):
    result = _invoke(environment, "start")

    assert result.exit_code == 0, result.output
    assert set(dotenv_values(environment.project_dir / ".env")) == {"USER_ID", "GROUP_ID"}
    assert environment.helper_client.run.call_args_list == [
        call("setup", require_settings=True),
        call("welcome"),
    ]
    environment.docker.build.assert_called_once_with({"utils"})
    environment.docker.up.assert_called_once_with(profiles=set())
    environment.docker.run.assert_called_once_with("ui", ["/lila/ui/build", "--update"], profiles={"utils"})
    environment.docker.exec_ok.assert_not_called()
    environment.docker.start.assert_not_called()


def test_fresh_start_with_database_and_search(environment):
    environment.settings_text = "SETUP_DATABASE=true\nSETUP_API_TOKENS=true\nCOMPOSE_PROFILES=search\n"

    result = _invoke(environment, "start")

    assert result.exit_code == 0, result.output
    environment.docker.build.assert_called_once_with({"search", "utils"})
    environment.docker.up.assert_called_once_with(profiles={"search"})
    probed = sorted(c.args[0] for c in environment.docker.exec_ok.call_args_list)
    assert probed == ["elasticsearch", "mongodb"]

    seed = environment.docker.run.call_args_list[-1]
    assert seed.args[0] == "python"
    assert "--tokens" in seed.args[1]
    assert "--es" in seed.args[1]
    assert environment.docker.exec.call_args_list == [
        call("mongodb", ["mongosh", "--quiet", "lichess", script]) for script in POST_SEED_SCRIPTS
    ]


def test_start_resumes_exited_environment(environment):
    environment.docker.list_services.return_value = [
        ServiceState(service="lila", state="exited"),
        ServiceState(service="mongodb", state="exited"),
    ]

    result = _invoke(environment, "start")

    assert result.exit_code == 0, result.output
    environment.docker.start.assert_called_once_with({"utils", "search", "mobile"})
    environment.docker.build.assert_not_called()
    environment.docker.run.assert_not_called()
    environment.helper_client.run.assert_not_called()


def test_start_engine_down(environment):
    environment.docker.ensure_engine.side_effect = SupervisorError("The Docker engine is not reachable.")

    result = _invoke(environment, "start")

    assert result.exit_code == 1
    environment.docker.build.assert_not_called()
    environment.helper_client.run.assert_not_called()


def test_setup_is_rerunnable(environment):
    first = _invoke(environment, "start")
    second = _invoke(environment, "start")

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert environment.docker.build.call_count == 2
    assert (environment.project_dir / "settings.env").read_text() == "SETUP_DATABASE=false\n"


def test_db_forces_seed_without_search(environment):
    (environment.project_dir / "settings.env").write_text("SETUP_DATABASE=false\n")

    result = _invoke(environment, "db")

    assert result.exit_code == 0, result.output
    environment.docker.exec_ok.assert_called_once_with("mongodb", MONGO_PING)
    seed = environment.docker.run.call_args
    assert seed.args[0] == "python"
    assert "--drop-db" in seed.args[1]
    assert "--es" not in seed.args[1]
    assert environment.docker.exec.call_count == len(POST_SEED_SCRIPTS)
    environment.docker.list_services.assert_not_called()
    assert (environment.project_dir / "settings.env").read_text() == "SETUP_DATABASE=false\n"


def test_db_waits_for_search_when_enabled(environment):
    (environment.project_dir / "settings.env").write_text("COMPOSE_PROFILES=search\n")

    result = _invoke(environment, "db")

    assert result.exit_code == 0, result.output
    probed = sorted(c.args[0] for c in environment.docker.exec_ok.call_args_list)
    assert probed == ["elasticsearch", "mongodb"]


def test_malformed_settings_file_does_not_block_stop(environment):
    (environment.project_dir / "settings.env").write_text("SETUP_DATABASE=perhaps\n")

    result = _invoke(environment, "stop")

    assert result.exit_code == 0, result.output
    environment.docker.stop.assert_called_once()


def test_fresh_start_regenerates_malformed_settings_file(environment):
    (environment.project_dir / "settings.env").write_text("SETUP_DATABASE=perhaps\n")

    result = _invoke(environment, "start")

    assert result.exit_code == 0, result.output
    assert environment.helper_client.run.call_args_list[0] == call("setup", require_settings=True)
    assert (environment.project_dir / "settings.env").read_text() == "SETUP_DATABASE=false\n"


def test_malformed_flag_from_setup_aborts_start(environment):
    environment.settings_text = "SETUP_BBPAIRINGS=perhaps\n"

    result = _invoke(environment, "start")

    assert result.exit_code == 1
    environment.docker.run_container.assert_not_called()
    environment.docker.exec_ok.assert_not_called()
    assert call("welcome") not in environment.helper_client.run.call_args_list
