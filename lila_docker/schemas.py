from enum import Enum
from typing import Dict, List, Literal, Optional, Set

from pydantic import BaseModel, Field

from .errors import ConfigurationError

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off", ""}

# Boolean switches written by the helper's `setup` flow.
FLAG_KEYS = ("SETUP_DATABASE", "SETUP_API_TOKENS", "SETUP_BBPAIRINGS")

IDENTITY_KEYS = ("USER_ID", "GROUP_ID")


class EnvironmentState(str, Enum):
    """Where the stack is in its lifecycle, derived from live `docker compose ps` output."""
    UNINITIALIZED = "uninitialized"
    RESUMABLE = "resumable"
    NOTHING_TO_RESUME = "nothing_to_resume"
    RUNNING = "running"


class StackSettings(BaseModel):
    """
    The merged settings for one invocation.

    `values` holds every key from settings.env plus the machine identity keys.
    The model is passed explicitly to every step and to child processes through
    their environment; nothing here touches os.environ.
    """
    values: Dict[str, str] = Field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def flag(self, key: str) -> bool:
        """Reads a boolean switch; a value that is neither true nor false is a ConfigurationError."""
        raw = self.values.get(key, "").strip().lower()
        if raw in TRUE_VALUES:
            return True
        if raw in FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} in settings.env must be true or false, got {self.values[key]!r}")

    @property
    def setup_database(self) -> bool:
        return self.flag("SETUP_DATABASE")

    @property
    def setup_api_tokens(self) -> bool:
        return self.flag("SETUP_API_TOKENS")

    @property
    def setup_bbpairings(self) -> bool:
        return self.flag("SETUP_BBPAIRINGS")

    @property
    def compose_profiles(self) -> Set[str]:
        """Profiles activated in settings.env via COMPOSE_PROFILES."""
        raw = self.values.get("COMPOSE_PROFILES", "")
        return {profile.strip() for profile in raw.split(",") if profile.strip()}

    @property
    def search_enabled(self) -> bool:
        return "search" in self.compose_profiles

    def with_values(self, **overrides: str) -> "StackSettings":
        """Returns a copy with the given keys replaced."""
        return StackSettings(values={**self.values, **overrides})

    def as_env(self) -> Dict[str, str]:
        return dict(self.values)


class SettingsDelta(BaseModel):
    """What one helper invocation changed in settings.env."""
    added: Dict[str, str] = Field(default_factory=dict)
    changed: Dict[str, str] = Field(default_factory=dict)
    removed: List[str] = Field(default_factory=list)

    @classmethod
    def between(cls, before: StackSettings, after: StackSettings) -> "SettingsDelta":
        added = {k: v for k, v in after.values.items() if k not in before.values}
        changed = {
            k: v for k, v in after.values.items()
            if k in before.values and before.values[k] != v
        }
        removed = sorted(k for k in before.values if k not in after.values)
        return cls(added=added, changed=changed, removed=removed)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed)


class ServiceState(BaseModel):
    """One container as reported by `docker compose ps --format json`."""
    service: str
    name: str = ""
    state: str = ""
    health: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    @property
    def is_exited(self) -> bool:
        return self.state == "exited"


class HostCapabilities(BaseModel):
    system: str
    machine: str
    has_cargo: bool = False
    engine_flavor: Literal["docker-desktop", "docker-engine", "unknown"] = "unknown"

    @property
    def is_macos(self) -> bool:
        return self.system == "Darwin"

    @property
    def has_engine(self) -> bool:
        return self.engine_flavor != "unknown"
