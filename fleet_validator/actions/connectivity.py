"""Connectivity sweep across the fleet."""

import asyncio
import logging
from dataclasses import dataclass

from fleet_validator.errors import FleetValidatorError
from fleet_validator.models import CommandResult
from fleet_validator.protocols import CommandExecutor

logger = logging.getLogger(__name__)

PROBE_COMMAND = 'echo "ok"'


@dataclass(frozen=True)
class NodeReachability:
    """Connectivity of one node."""

    node: str
    reachable: bool
    detail: str
    stderr: str = ""

    def format_line(self) -> str:
        icon = "✓" if self.reachable else "✗"
        return f"{icon} {self.node}: {self.detail}"


def _classify(node_name: str, result: CommandResult) -> NodeReachability:
    if result.exit_code == 0 and "ok" in result.stdout:
        return NodeReachability(node_name, True, "connected", result.stderr)
    return NodeReachability(
        node_name, False, f"failed (exit {result.exit_code})", result.stderr
    )


async def check_connectivity(executor: CommandExecutor) -> list[NodeReachability]:
    """Probe every node with a trivial command.

    A node that cannot be reached is reported as unreachable; it does not
    stop the probe on other nodes.

    Returns:
        One entry per node, in node order
    """
    names = executor.get_node_names()

    async def probe(name: str) -> NodeReachability:
        try:
            result = await executor.exec(name, PROBE_COMMAND)
        except (FleetValidatorError, OSError) as e:
            logger.warning("Connectivity probe failed on %s: %s", name, e)
            return NodeReachability(name, False, f"unreachable: {e}")
        return _classify(name, result)

    return list(await asyncio.gather(*(probe(name) for name in names)))
