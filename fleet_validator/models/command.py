"""Command execution data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Result of a remote command execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0
