import logging
import threading
from typing import Dict, List, Optional, Set, Tuple

from .config import Config
from .display import Display
from .docker_client import DockerClient
from .errors import SeedingError, SupervisorError
from .helper_client import HelperClient, detect_host_capabilities, select_strategy
from .pipeline import FailurePolicy, PipelineStep, run_steps
from .readiness import ReadinessProbe, require_ready
from .schemas import EnvironmentState, HostCapabilities, ServiceState, SettingsDelta, StackSettings

log = logging.getLogger(__name__)

UTILS_PROFILE = "utils"

# Services recreated when the hostname changes
WEB_SERVICES = ["lila", "lila_ws", "nginx"]

MONGO_PING = ["mongosh", "--quiet", "--eval", "db.adminCommand('ping')"]
ELASTICSEARCH_HEALTH = [
    "curl", "-s", "-f",
    "http://localhost:9200/_cluster/health?wait_for_status=yellow&timeout=1s",
]

SEED_SCRIPT = "/lila-db-seed/spamdb/spamdb.py"
POST_SEED_SCRIPTS = [
    "/lila/bin/mongodb/indexes.js",
    "/lila/bin/mongodb/create-trophy-kinds.js",
    "/scripts/mongodb/fixup.js",
]

BBPAIRINGS_BUILD_IMAGE = "sickp/alpine-make"
BBPAIRINGS_BINARY = "bbpPairings.out"


def classify_environment_state(known: Set[str], exited: Set[str]) -> EnvironmentState:
    """
    Decides what `start` has to do from the services compose knows about.

    Known services are checked first: a stack with running services and no
    exited ones is not a fresh environment.
    """
    if not known:
        return EnvironmentState.UNINITIALIZED
    if exited:
        return EnvironmentState.RESUMABLE
    return EnvironmentState.NOTHING_TO_RESUME


class StackManager:
    """
    Orchestrator for the lila-docker environment.
    Handles state classification, profile resolution and the individual
    setup steps, delegating to DockerClient and HelperClient.
    """

    def __init__(self, config: Config, display: Display):
        self.config = config
        self.display = display
        self.docker_client = DockerClient(config, display)
        self._host: Optional[HostCapabilities] = None
        self._helper_client: Optional[HelperClient] = None

    @property
    def host(self) -> HostCapabilities:
        if self._host is None:
            self._host = detect_host_capabilities(self.docker_client)
        return self._host

    @property
    def helper_client(self) -> HelperClient:
        """Created on first use, so verbs that never run the helper skip host detection."""
        if self._helper_client is None:
            self._helper_client = HelperClient(self.config, select_strategy(self.host))
        return self._helper_client

    # =============================================================================
    # Profile Resolution and State Classification
    # =============================================================================

    def all_profiles(self) -> Set[str]:
        """Every profile known to compose, including ones not active in settings.env."""
        return self.docker_client.config_profiles()

    def profiles_arg(self) -> str:
        """All profiles comma-joined, in the form COMPOSE_PROFILES expects."""
        return ",".join(sorted(self.all_profiles()))

    def _service_sets(self) -> Tuple[List[ServiceState], Set[str], Set[str]]:
        self.docker_client.ensure_engine()
        services = self.docker_client.list_services()
        known = {s.service for s in services}
        exited = {s.service for s in services if s.is_exited}
        return services, known, exited

    def classify_environment(self) -> EnvironmentState:
        """Classifies the live stack. SupervisorError propagates; it never means 'uninitialized'."""
        _, known, exited = self._service_sets()
        state = classify_environment_state(known, exited)
        log.debug(f"Environment state: {state.value} (known={sorted(known)}, exited={sorted(exited)})")
        return state

    def environment_status(self) -> Tuple[EnvironmentState, List[ServiceState]]:
        """Like classify_environment, but reports RUNNING when every container is up."""
        services, known, exited = self._service_sets()
        state = classify_environment_state(known, exited)
        if state is EnvironmentState.NOTHING_TO_RESUME and all(s.is_running for s in services):
            state = EnvironmentState.RUNNING
        return state, services

    # =============================================================================
    # Lifecycle Across All Profiles
    # =============================================================================

    def resume(self):
        """Starts stopped containers in every profile."""
        log.info("Starting stopped services...")
        self.docker_client.start(self.all_profiles())

    def stop_all(self):
        log.info("Stopping all services...")
        self.docker_client.stop(self.all_profiles())

    def down_all(self):
        log.info("Removing all services and their volumes...")
        self.docker_client.down(self.all_profiles(), volumes=True)

    def build_all(self):
        profiles = self.all_profiles()
        log.info("Pulling images...")
        self.docker_client.pull(profiles)
        log.info("Building images...")
        self.docker_client.build(profiles)

    # =============================================================================
    # Setup Steps
    # =============================================================================

    def _with_utils(self, settings: Optional[StackSettings] = None) -> Set[str]:
        settings = settings or self.config.settings
        return settings.compose_profiles | {UTILS_PROFILE}

    def write_identity(self) -> Dict[str, str]:
        return self.config.write_identity()

    def generate_settings(self) -> SettingsDelta:
        """Runs the helper's setup flow; settings.env must exist afterwards."""
        return self.helper_client.run("setup", require_settings=True)

    def build_images(self):
        log.info("Building images...")
        self.docker_client.build(self._with_utils())

    def start_containers(self):
        log.info("Starting services...")
        self.docker_client.up(profiles=self.config.settings.compose_profiles)

    def compile_ui(self, clean: bool = False):
        """Runs the UI asset compiler once: incremental by default, from scratch with clean=True."""
        log.info("Compiling js/css...")
        self.docker_client.run(
            "ui",
            ["/lila/ui/build", "--clean" if clean else "--update"],
            profiles=self._with_utils(),
        )

    def build_pairing_engine(self):
        """Compiles bbpPairings in a throwaway container, installs it in lila and checks that it runs."""
        repo = self.config.repos_dir / "bbpPairings"
        log.info("Building bbpPairings...")
        self.docker_client.run_container(
            BBPAIRINGS_BUILD_IMAGE,
            ["make", "-C", "/mnt"],
            volumes={str(repo): "/mnt"},
        )
        target = f"/usr/local/bin/{BBPAIRINGS_BINARY}"
        self.docker_client.cp(str(repo / BBPAIRINGS_BINARY), f"lila:{target}")
        self.docker_client.exec("lila", [BBPAIRINGS_BINARY])

    def data_layer_probes(self, settings: Optional[StackSettings] = None) -> List[ReadinessProbe]:
        """MongoDB always; Elasticsearch only when the search profile is active."""
        settings = settings or self.config.settings
        probes = [
            ReadinessProbe(
                service="mongodb",
                check=lambda: self.docker_client.exec_ok("mongodb", MONGO_PING),
                interval=1.0,
                waiting_message="Waiting for mongodb to be ready...",
            )
        ]
        if settings.search_enabled:
            probes.append(
                ReadinessProbe(
                    service="elasticsearch",
                    check=lambda: self.docker_client.exec_ok("elasticsearch", ELASTICSEARCH_HEALTH),
                    interval=2.0,
                    waiting_message="Waiting for elasticsearch to be ready...",
                )
            )
        return probes

    def seed_command(self, settings: StackSettings) -> List[str]:
        command = [
            "python", SEED_SCRIPT,
            "--uri=mongodb://mongodb/lichess",
            "--drop-db",
            f"--password={settings.get('PASSWORD', 'password')}",
            f"--su-password={settings.get('SU_PASSWORD', 'password')}",
            "--streamers",
            "--coaches",
        ]
        if settings.setup_api_tokens:
            command.append("--tokens")
        if settings.search_enabled:
            command.extend(["--es", "--es-host=elasticsearch:9200"])
        return command

    def seed_database(
        self,
        settings: Optional[StackSettings] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        """
        Drops and re-seeds the database. Callers gate this on SETUP_DATABASE.

        Waits for the data layer, runs the seed process in the `python`
        container, then the index, trophy and fixup scripts inside `mongodb`.
        """
        settings = settings or self.config.settings
        require_ready(self.data_layer_probes(settings), timeout, cancel)

        log.info("Seeding the database...")
        try:
            self.docker_client.run("python", self.seed_command(settings), profiles=self._with_utils(settings))
        except SupervisorError as e:
            raise SeedingError(f"Seeding the database failed: {e}") from e

        for script in POST_SEED_SCRIPTS:
            log.info(f"Running {script.rsplit('/', 1)[-1]}...")
            try:
                self.docker_client.exec("mongodb", ["mongosh", "--quiet", "lichess", script])
            except SupervisorError as e:
                raise SeedingError(f"{script} failed: {e}") from e

    def welcome(self):
        self.helper_client.run("welcome")

    # =============================================================================
    # Maintenance Verbs
    # =============================================================================

    def regenerate_hostname(self):
        """Lets the helper pick a new hostname and recreates only the web-facing services."""
        self.helper_client.run("hostname", require_settings=True)
        log.info(f"Recreating {', '.join(WEB_SERVICES)}...")
        self.docker_client.up(WEB_SERVICES, force_recreate=True, no_deps=True)

    def pair_mobile(self):
        self.helper_client.run("mobile", require_settings=True)
        settings = self.config.settings
        phone_ip = settings.get("PHONE_IP")
        if not phone_ip:
            log.warning("No phone IP configured, skipping adb pairing")
            return
        pairing_port = settings.get("PAIRING_PORT")
        pairing_code = settings.get("PAIRING_CODE")
        if pairing_port and pairing_code:
            self.docker_client.exec(
                "mobile", ["adb", "pair", f"{phone_ip}:{pairing_port}", pairing_code], interactive=True
            )
        connection_port = settings.get("CONNECTION_PORT", "5555")
        self.docker_client.exec("mobile", ["adb", "connect", f"{phone_ip}:{connection_port}"], interactive=True)

    def format_code(self) -> Dict[str, bool]:
        """Runs every formatter; containers that are not running are skipped with a warning."""
        dc = self.docker_client
        steps = [
            PipelineStep(
                name="ui",
                description="lila ui formatting",
                operation=lambda: dc.run("ui", ["pnpm", "run", "format"], workdir="/lila", profiles=self._with_utils()),
                policy=FailurePolicy.BEST_EFFORT,
            ),
            PipelineStep(
                name="lila",
                description="lila scala formatting",
                operation=lambda: dc.run("lila", ["scalafmtAll"], workdir="/lila", entrypoint="sbt"),
                policy=FailurePolicy.BEST_EFFORT,
            ),
            PipelineStep(
                name="lila_ws",
                description="lila-ws formatting",
                operation=lambda: dc.exec("lila_ws", ["sbt", "scalafmtAll"]),
                policy=FailurePolicy.BEST_EFFORT,
            ),
            PipelineStep(
                name="chessground",
                description="chessground formatting",
                operation=lambda: dc.exec("chessground", ["pnpm", "run", "format"]),
                policy=FailurePolicy.BEST_EFFORT,
            ),
            PipelineStep(
                name="pgn_viewer",
                description="pgn-viewer formatting",
                operation=lambda: dc.exec("pgn_viewer", ["pnpm", "run", "format"]),
                policy=FailurePolicy.BEST_EFFORT,
            ),
        ]
        results = run_steps(steps, lambda: self.config.settings)
        return {result.name: result.status == "completed" for result in results}

    def add_services(self, timeout: Optional[float] = None):
        """Runs the helper's add_services flow, then builds, starts and (if enabled) seeds."""
        self.helper_client.run("add_services", require_settings=True)
        self.build_images()
        self.start_containers()
        if self.config.settings.setup_database:
            self.seed_database(timeout=timeout)
        else:
            log.info("Skipping database setup")

    def clean_lila(self):
        log.info("Removing lila build artifacts...")
        self.docker_client.run("lila", ["-rf", "target"], workdir="/lila", entrypoint="rm")

    def restart_lila(self):
        log.info("Restarting lila...")
        self.docker_client.restart(["lila"])

    def run_helper(self, subcommand: str, *args: str) -> SettingsDelta:
        """Passthrough for informational helper flows."""
        return self.helper_client.run(subcommand, *args)
