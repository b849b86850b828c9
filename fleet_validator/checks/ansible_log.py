"""Parsing of the ansible-pull log written on each node."""

import re
from dataclasses import dataclass, field
from enum import Enum

RUN_START_MARKER = "Starting Ansible Pull at"
RECAP_MARKER = "PLAY RECAP"

_HOST_STATS = re.compile(
    r"^(?P<host>\S+)\s*:\s*"
    r"ok=(?P<ok>\d+)\s+"
    r"changed=(?P<changed>\d+)\s+"
    r"unreachable=(?P<unreachable>\d+)\s+"
    r"failed=(?P<failed>\d+)"
)


class DeploymentState(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class HostStats:
    host: str
    ok: int
    changed: int
    unreachable: int
    failed: int


@dataclass(frozen=True)
class DeploymentSummary:
    """State of the most recent ansible-pull run found in a log."""

    state: DeploymentState
    hosts: tuple[HostStats, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> int:
        return sum(h.ok for h in self.hosts)

    @property
    def changed(self) -> int:
        return sum(h.changed for h in self.hosts)

    @property
    def unreachable(self) -> int:
        return sum(h.unreachable for h in self.hosts)

    @property
    def failed(self) -> int:
        return sum(h.failed for h in self.hosts)

    def describe(self) -> str:
        return (
            f"ok={self.ok} changed={self.changed} "
            f"unreachable={self.unreachable} failed={self.failed}"
        )


def latest_run(text: str) -> str | None:
    """Log text following the last run-start marker, or None if there is none."""
    index = text.rfind(RUN_START_MARKER)
    if index == -1:
        return None
    return text[index + len(RUN_START_MARKER):]


def parse_deployment_log(text: str) -> DeploymentSummary:
    """Classify the latest ansible-pull run in ``text``.

    Only output after the last ``Starting Ansible Pull at`` line counts, so
    earlier runs (retries, previous boots) never leak into the result. A run
    without a recap, or a log without any run, is still in progress.
    """
    run = latest_run(text)
    if run is None:
        return DeploymentSummary(DeploymentState.IN_PROGRESS)

    recap_index = run.find(RECAP_MARKER)
    if recap_index == -1:
        return DeploymentSummary(DeploymentState.IN_PROGRESS)

    hosts = []
    for line in run[recap_index + len(RECAP_MARKER):].splitlines():
        match = _HOST_STATS.match(line.strip())
        if match:
            hosts.append(
                HostStats(
                    host=match.group("host"),
                    ok=int(match.group("ok")),
                    changed=int(match.group("changed")),
                    unreachable=int(match.group("unreachable")),
                    failed=int(match.group("failed")),
                )
            )

    # Recap header written but host lines not flushed yet
    if not hosts:
        return DeploymentSummary(DeploymentState.IN_PROGRESS)

    failed = any(h.failed or h.unreachable for h in hosts)
    return DeploymentSummary(
        DeploymentState.FAILED if failed else DeploymentState.SUCCEEDED,
        tuple(hosts),
    )
