"""Check result data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckResult:
    """Verdict of one check, for one node or for the whole cluster."""

    name: str
    node: str | None
    passed: bool
    message: str
    duration_ms: int

    def format_line(self) -> str:
        """Render as a single report line."""
        icon = "✓" if self.passed else "✗"
        node_info = f" [{self.node}]" if self.node else ""
        return f"{icon} {self.name}{node_info}: {self.message} ({self.duration_ms}ms)"
