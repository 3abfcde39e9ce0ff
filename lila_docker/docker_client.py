import docker
import json
import os
import subprocess
import logging
from typing import Dict, Iterable, List, Optional, Set

from .config import Config
from .display import Display
from .errors import SupervisorError
from .schemas import ServiceState

log = logging.getLogger(__name__)

COMPOSE_COMMAND = ["docker", "compose"]

# Number of output lines quoted in a SupervisorError
ERROR_TAIL_LINES = 20


class DockerClient:
    """A wrapper for the container engine: the docker SDK for daemon queries, `docker compose` for the stack."""

    def __init__(self, config: Config, display: Display):
        self.config = config
        self.display = display
        try:
            self.client = docker.from_env()
            self.client.ping()  # Test connection
            log.debug("Docker client initialized successfully")
        except docker.errors.DockerException as e:
            log.debug(f"Failed to initialize Docker client: {e}")
            # Verbs that need the engine call ensure_engine() and fail there
            self.client = None

    # =============================================================================
    # Engine
    # =============================================================================

    def ensure_engine(self):
        """Raises SupervisorError unless the docker daemon answers a ping."""
        if self.client is None:
            raise SupervisorError("The Docker engine is not reachable.")
        try:
            self.client.ping()
        except docker.errors.DockerException as e:
            raise SupervisorError(f"The Docker engine is not reachable: {e}") from e

    def engine_flavor(self) -> str:
        """Distinguishes Docker Desktop from a plain Docker Engine install."""
        if self.client is None:
            return "unknown"
        try:
            info = self.client.info()
        except docker.errors.DockerException as e:
            log.debug(f"Could not read Docker info: {e}")
            return "unknown"
        if "Docker Desktop" in info.get("OperatingSystem", ""):
            return "docker-desktop"
        return "docker-engine"

    # =============================================================================
    # Docker Compose Operations
    # =============================================================================

    def _compose_env(self, profiles: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """Environment for a compose child process: settings on top of the caller's env."""
        env = dict(os.environ)
        env.update(self.config.settings.as_env())
        if profiles is not None:
            env["COMPOSE_PROFILES"] = ",".join(sorted(profiles))
        return env

    def _run_compose_command(
        self,
        command: List[str],
        profiles: Optional[Iterable[str]] = None,
        interactive: bool = False,
    ) -> str:
        """
        Runs a docker compose command and returns its combined output.

        Interactive commands inherit the terminal (no output is captured).
        Raises SupervisorError on a nonzero exit.
        """
        full_cmd = COMPOSE_COMMAND + command
        env = self._compose_env(profiles)
        log.debug(f"Running `{' '.join(full_cmd)}` (COMPOSE_PROFILES={env.get('COMPOSE_PROFILES', '')})")

        try:
            if interactive:
                process = subprocess.run(full_cmd, cwd=self.config.project_dir, env=env)
                return_code = process.returncode
                output_lines = []
            else:
                process = subprocess.Popen(
                    full_cmd,
                    cwd=self.config.project_dir,
                    env=env,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    bufsize=1,
                    encoding='utf-8',
                )
                output_lines = []
                for line in iter(process.stdout.readline, ''):
                    output_lines.append(line)
                    log.debug(line.rstrip())
                process.wait()
                return_code = process.returncode
        except FileNotFoundError as e:
            raise SupervisorError("docker command not found. Is it installed and in your PATH?") from e

        output = "".join(output_lines)
        if return_code != 0:
            tail = "".join(output_lines[-ERROR_TAIL_LINES:]).strip()
            raise SupervisorError(
                f"`{' '.join(full_cmd)}` failed with exit code {return_code}"
                + (f":\n{tail}" if tail else "")
            )
        return output

    def _query_compose(self, command: List[str], profiles: Optional[Iterable[str]] = None) -> subprocess.CompletedProcess:
        """Runs a compose command with captured output, without raising on a nonzero exit."""
        full_cmd = COMPOSE_COMMAND + command
        try:
            return subprocess.run(
                full_cmd,
                cwd=self.config.project_dir,
                env=self._compose_env(profiles),
                capture_output=True,
                text=True,
                encoding='utf-8',
            )
        except FileNotFoundError as e:
            raise SupervisorError("docker command not found. Is it installed and in your PATH?") from e

    def build(self, profiles: Optional[Iterable[str]] = None):
        """Builds the images of every service enabled by the given profiles."""
        return self._run_compose_command(["build"], profiles)

    def pull(self, profiles: Optional[Iterable[str]] = None):
        """Pulls registry images; services built from source are skipped."""
        return self._run_compose_command(["pull", "--ignore-buildable"], profiles)

    def up(
        self,
        services: Optional[List[str]] = None,
        profiles: Optional[Iterable[str]] = None,
        force_recreate: bool = False,
        no_deps: bool = False,
    ):
        """Creates and starts containers detached."""
        command = ["up", "-d"]
        if force_recreate:
            command.append("--force-recreate")
        if no_deps:
            command.append("--no-deps")
        return self._run_compose_command(command + list(services or []), profiles)

    def start(self, profiles: Optional[Iterable[str]] = None):
        """Starts existing, stopped containers."""
        return self._run_compose_command(["start"], profiles)

    def stop(self, profiles: Optional[Iterable[str]] = None):
        return self._run_compose_command(["stop"], profiles)

    def down(self, profiles: Optional[Iterable[str]] = None, volumes: bool = True):
        """Removes containers and, by default, their named volumes."""
        command = ["down", "-v"] if volumes else ["down"]
        return self._run_compose_command(command, profiles)

    def restart(self, services: List[str]):
        return self._run_compose_command(["restart"] + list(services))

    def exec(
        self,
        service: str,
        command: List[str],
        workdir: Optional[str] = None,
        interactive: bool = False,
    ):
        """Runs a command inside a running service container."""
        exec_cmd = ["exec"]
        if not interactive:
            exec_cmd.append("-T")
        if workdir:
            exec_cmd.extend(["-w", workdir])
        return self._run_compose_command(exec_cmd + [service] + command, interactive=interactive)

    def exec_ok(self, service: str, command: List[str]) -> bool:
        """Returns True when the command exits 0 inside the service container. Used by readiness probes."""
        result = self._query_compose(["exec", "-T", service] + command)
        if result.returncode != 0:
            log.debug(f"`{' '.join(command)}` in {service} exited {result.returncode}")
        return result.returncode == 0

    def run(
        self,
        service: str,
        command: List[str],
        workdir: Optional[str] = None,
        entrypoint: Optional[str] = None,
        profiles: Optional[Iterable[str]] = None,
        interactive: bool = False,
    ):
        """Runs a one-off command in a fresh container that is removed afterwards."""
        run_cmd = ["run", "--rm"]
        if workdir:
            run_cmd.extend(["-w", workdir])
        if entrypoint is not None:
            run_cmd.extend(["--entrypoint", entrypoint])
        return self._run_compose_command(run_cmd + [service] + command, profiles, interactive=interactive)

    def cp(self, source: str, destination: str):
        """Copies files between the host and a service container (`service:/path`)."""
        return self._run_compose_command(["cp", source, destination])

    def run_container(self, image: str, command: List[str], volumes: Optional[Dict[str, str]] = None) -> str:
        """Runs a throwaway container outside the compose project (`docker run --rm`)."""
        full_cmd = ["docker", "run", "--rm"]
        for host_path, container_path in (volumes or {}).items():
            full_cmd.extend(["-v", f"{host_path}:{container_path}"])
        full_cmd.append(image)
        full_cmd.extend(command)
        log.debug(f"Running `{' '.join(full_cmd)}`")

        try:
            process = subprocess.run(full_cmd, capture_output=True, text=True, encoding='utf-8')
        except FileNotFoundError as e:
            raise SupervisorError("docker command not found. Is it installed and in your PATH?") from e
        if process.returncode != 0:
            raise SupervisorError(
                f"`{' '.join(full_cmd)}` failed with exit code {process.returncode}:\n{process.stderr.strip()}"
            )
        return process.stdout

    # =============================================================================
    # Structured Queries
    # =============================================================================

    def list_services(self) -> List[ServiceState]:
        """
        Lists every container of the project, running or not.

        Compose prints either a JSON array or one JSON object per line,
        depending on its version; both are accepted.
        """
        result = self._query_compose(["ps", "--all", "--format", "json"])
        if result.returncode != 0:
            raise SupervisorError(
                f"`docker compose ps` failed with exit code {result.returncode}: {result.stderr.strip()}"
            )

        output = result.stdout.strip()
        if not output:
            return []
        try:
            if output.startswith("["):
                entries = json.loads(output)
            else:
                entries = [json.loads(line) for line in output.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise SupervisorError(f"Could not parse `docker compose ps` output: {e}") from e

        return [
            ServiceState(
                service=entry.get("Service", ""),
                name=entry.get("Name", ""),
                state=entry.get("State", ""),
                health=entry.get("Health") or None,
            )
            for entry in entries
        ]

    def config_profiles(self) -> Set[str]:
        """Every profile declared in the compose configuration, active or not."""
        result = self._query_compose(["config", "--profiles"])
        if result.returncode != 0:
            raise SupervisorError(
                f"`docker compose config --profiles` failed with exit code {result.returncode}: {result.stderr.strip()}"
            )
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}
