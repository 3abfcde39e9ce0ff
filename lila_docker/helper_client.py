import os
import platform
import shutil
import subprocess
import logging
from pathlib import Path
from typing import List

from .config import Config
from .errors import ToolchainError
from .schemas import HostCapabilities, SettingsDelta

log = logging.getLogger(__name__)

HELPER_BINARY = "command"
ZIGBUILD_IMAGE = "ghcr.io/rust-cross/cargo-zigbuild:0.19.8"
MACOS_TARGET = "universal2-apple-darwin"


def detect_host_capabilities(docker_client=None) -> HostCapabilities:
    """
    Inspects the local machine to decide how the helper gets compiled.

    The engine is only queried when there is no local cargo, since only the
    containerized builds need it.
    """
    has_cargo = shutil.which("cargo") is not None
    engine_flavor = "unknown"
    if not has_cargo and docker_client is not None:
        engine_flavor = docker_client.engine_flavor()
    capabilities = HostCapabilities(
        system=platform.system(),
        machine=platform.machine(),
        has_cargo=has_cargo,
        engine_flavor=engine_flavor,
    )
    log.debug(
        f"Host: {capabilities.system}/{capabilities.machine}, "
        f"cargo={'yes' if capabilities.has_cargo else 'no'}, engine={capabilities.engine_flavor}"
    )
    return capabilities


def linux_target(machine: str) -> str:
    if machine.lower() in ("arm64", "aarch64"):
        return "aarch64-unknown-linux-gnu"
    return "x86_64-unknown-linux-gnu"


class LocalToolchainStrategy:
    """Builds the helper with the host's cargo."""

    name = "local cargo"

    def build_command(self, crate_dir: Path) -> List[str]:
        return ["cargo", "build", "--release", "--quiet", "--manifest-path", str(crate_dir / "Cargo.toml")]

    def binary_path(self, crate_dir: Path) -> Path:
        return crate_dir / "target" / "release" / HELPER_BINARY


class ContainerToolchainStrategy:
    """Cross-compiles the helper inside a pinned cargo-zigbuild image."""

    def __init__(self, target: str, image: str = ZIGBUILD_IMAGE):
        self.target = target
        self.image = image

    @property
    def name(self) -> str:
        return f"containerized build ({self.target})"

    def build_command(self, crate_dir: Path) -> List[str]:
        return [
            "docker", "run", "--rm",
            "-v", f"{crate_dir}:/io",
            "-w", "/io",
            self.image,
            "cargo", "zigbuild", "--release", "--quiet", "--target", self.target,
        ]

    def binary_path(self, crate_dir: Path) -> Path:
        return crate_dir / "target" / self.target / "release" / HELPER_BINARY


def select_strategy(capabilities: HostCapabilities):
    """Local cargo first, then a container build for macOS, then for Linux."""
    if capabilities.has_cargo:
        return LocalToolchainStrategy()
    if not capabilities.has_engine:
        raise ToolchainError(
            "Cannot compile the helper: cargo is not installed and the Docker engine is not reachable.",
            suggestion="Install Rust (https://rustup.rs) or start Docker, then try again.",
        )
    if capabilities.is_macos:
        return ContainerToolchainStrategy(MACOS_TARGET)
    return ContainerToolchainStrategy(linux_target(capabilities.machine))


class HelperClient:
    """
    Runs the native configuration helper by subcommand name.

    The helper is compiled at most once per process. It is the only writer of
    settings.env, so settings are reloaded after every successful run.
    """

    def __init__(self, config: Config, strategy):
        self.config = config
        self.strategy = strategy
        self._built = False

    @property
    def binary_path(self) -> Path:
        return self.strategy.binary_path(self.config.helper_crate_dir)

    def build(self):
        """Compiles the helper, once."""
        if self._built:
            return

        build_cmd = self.strategy.build_command(self.config.helper_crate_dir)
        log.info(f"Compiling the lila-docker helper ({self.strategy.name})...")
        log.debug(f"Running `{' '.join(build_cmd)}`")
        try:
            process = subprocess.run(build_cmd, cwd=self.config.project_dir, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ToolchainError(f"Could not compile the helper: {build_cmd[0]} not found") from e

        if process.returncode != 0:
            raise ToolchainError(
                f"Compiling the helper failed with exit code {process.returncode}:\n{process.stderr.strip()}"
            )
        self._built = True

    def run(self, subcommand: str, *args: str, require_settings: bool = False) -> SettingsDelta:
        """
        Runs `<helper> <subcommand> [args...]` attached to the terminal.

        Args:
            subcommand: The helper flow to run (setup, welcome, hostname, ...)
            require_settings: Fail with ConfigurationError if settings.env is absent afterwards

        Returns:
            SettingsDelta: keys the helper added, changed or removed
        """
        self.build()
        before = self.config.settings

        helper_cmd = [str(self.binary_path), subcommand, *args]
        env = dict(os.environ)
        env.update(before.as_env())
        log.debug(f"Running `{' '.join(helper_cmd)}`")
        try:
            process = subprocess.run(helper_cmd, cwd=self.config.project_dir, env=env)
        except OSError as e:
            raise ToolchainError(f"Could not run the helper at {self.binary_path}: {e}") from e

        if process.returncode != 0:
            raise ToolchainError(f"The helper's `{subcommand}` flow exited with code {process.returncode}")

        after = self.config.reload(required=require_settings)
        delta = SettingsDelta.between(before, after)
        if not delta.is_empty:
            log.debug(
                f"Settings updated by `{subcommand}`: added={sorted(delta.added)}, "
                f"changed={sorted(delta.changed)}, removed={delta.removed}"
            )
        return delta
