"""Error types raised by the bootstrap orchestrator.

Every error carries the process exit code the CLI should use when it
reaches the top level uncaught.
"""
import shlex
from typing import Optional, Sequence


class BootstrapError(Exception):
    """Base class for all orchestrator failures."""

    exit_code: int = 1


class ConfigError(BootstrapError):
    """The cluster configuration is missing, unparsable or inconsistent."""


class NodeNotFoundError(ConfigError):
    """The local machine is not registered in the node inventory."""

    def __init__(self, hostname: str):
        super().__init__(f"Node {hostname} not found in config")
        self.hostname = hostname


class CommandError(BootstrapError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: Optional[str] = None):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(str(self))

    @property
    def exit_code(self) -> int:
        return self.returncode or 1

    def __str__(self) -> str:
        message = f"{format_command(self.command)} exited with status {self.returncode}"
        if self.stderr and self.stderr.strip():
            message = f"{message}\n{self.stderr.strip()}"
        return message


class WaitTimeoutError(BootstrapError):
    """A polled condition did not become true within its time budget."""

    exit_code = 124

    def __init__(self, description: str, timeout: float, attempts: int):
        super().__init__(
            f"Timed out after {timeout:.0f}s waiting for {description} ({attempts} attempts)"
        )
        self.description = description
        self.timeout = timeout
        self.attempts = attempts


class RemoteAuthError(BootstrapError):
    """SSH authentication against a remote node was rejected."""


class RemoteUnavailableError(BootstrapError):
    """A remote node could not be reached. Callers polling a node retry on this."""


def format_command(command: Sequence[str]) -> str:
    """Render a command for display or logging."""
    return " ".join(shlex.quote(str(part)) for part in command)
