import os
import logging
from pathlib import Path
from typing import Dict, Optional
from dotenv import dotenv_values, set_key

from .errors import ConfigurationError
from .schemas import StackSettings, IDENTITY_KEYS
from .display import Display

log = logging.getLogger(__name__)

SETTINGS_FILE = "settings.env"
IDENTITY_FILE = ".env"
HELPER_CRATE_DIR = "command"
REPOS_DIR = "repos"


def machine_identity() -> Dict[str, str]:
    """The numeric user and group id of the invoking user, computed fresh on every run."""
    return {
        "USER_ID": str(os.getuid()),
        "GROUP_ID": str(os.getgid()),
    }


def write_identity_env(env_path: Path, identity: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Writes the .env file read by docker compose for container user mapping.

    The file is truncated first so it only ever carries the identity keys,
    whatever a previous run (or another host) left behind.
    """
    identity = identity or machine_identity()
    try:
        env_path.parent.mkdir(parents=True, exist_ok=True)
        env_path.write_text("")
        for key in IDENTITY_KEYS:
            set_key(env_path, key, identity[key], quote_mode="never")
    except OSError as e:
        raise ConfigurationError(f"Could not write {env_path}: {e}") from e

    log.debug(f"Wrote machine identity to {env_path}: {identity}")
    return identity


def load_settings(
    settings_path: Path,
    identity: Optional[Dict[str, str]] = None,
    required: bool = True,
) -> StackSettings:
    """
    Loads settings.env verbatim and merges the machine identity on top.

    Args:
        settings_path: Path to the settings file written by the helper
        identity: USER_ID/GROUP_ID values; these always win over the file
        required: Raise ConfigurationError when the file does not exist

    Returns:
        StackSettings: the merged settings
    """
    if settings_path.exists():
        try:
            raw = dotenv_values(settings_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Could not read {settings_path}: {e}") from e
        # Keys without '=' parse as None
        values = {key: value for key, value in raw.items() if value is not None}
    elif required:
        raise ConfigurationError(f"Settings file not found: {settings_path}")
    else:
        log.debug(f"No settings file at {settings_path}, using machine identity only")
        values = {}

    values.update(identity or machine_identity())

    # Flag values are checked when a verb reads them
    return StackSettings(values=values)


class Config:
    """Owns the project paths and the settings currently in effect."""

    def __init__(self, display: Display, project_dir: Path = Path(".")):
        self._display = display
        self._project_dir = Path(project_dir).resolve()
        self._identity = machine_identity()
        self._settings = load_settings(self.settings_path, self._identity, required=False)

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    @property
    def settings_path(self) -> Path:
        return self._project_dir / SETTINGS_FILE

    @property
    def identity_path(self) -> Path:
        return self._project_dir / IDENTITY_FILE

    @property
    def helper_crate_dir(self) -> Path:
        return self._project_dir / HELPER_CRATE_DIR

    @property
    def repos_dir(self) -> Path:
        return self._project_dir / REPOS_DIR

    @property
    def settings(self) -> StackSettings:
        """Returns the settings loaded by the most recent (re)load."""
        return self._settings

    def write_identity(self) -> Dict[str, str]:
        """Recomputes the machine identity and writes it to .env."""
        self._identity = machine_identity()
        write_identity_env(self.identity_path, self._identity)
        self._settings = self._settings.with_values(**self._identity)
        return self._identity

    def reload(self, required: bool = True) -> StackSettings:
        """Re-reads settings.env, typically after the helper rewrote it."""
        self._settings = load_settings(self.settings_path, self._identity, required=required)
        return self._settings
