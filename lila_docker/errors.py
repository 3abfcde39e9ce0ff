from typing import Optional


class LilaDockerError(Exception):
    """Base class for failures that should be reported to the user and abort the verb."""

    default_suggestion: Optional[str] = None

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion or self.default_suggestion


class ConfigurationError(LilaDockerError):
    """settings.env is missing or holds values that cannot be parsed."""

    default_suggestion = "Run `lila-docker start` to regenerate settings.env."


class ToolchainError(LilaDockerError):
    """The native helper could not be compiled or exited with an error."""

    default_suggestion = "Check the Rust toolchain (or Docker, when building in a container) and try again."


class SupervisorError(LilaDockerError):
    """The container engine is unreachable or a compose operation returned nonzero."""

    default_suggestion = "Make sure Docker is running and `docker compose` works in this directory."


class ReadinessTimeout(LilaDockerError):
    """A gated dependency did not become ready before the configured deadline."""

    default_suggestion = "Inspect the service with `docker compose logs <service>` or raise --timeout."


class SeedingError(LilaDockerError):
    """The seed process or one of the post-seed scripts exited nonzero."""

    default_suggestion = "Re-run `lila-docker db` once the data store is healthy."
