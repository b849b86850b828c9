"""Check contract and the per-node fan-out helper."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from fleet_validator.models import CheckResult, FleetConfig, NodeConfig, NodeRole
from fleet_validator.protocols import CommandExecutor

logger = logging.getLogger(__name__)

ALL_ROLES: tuple[NodeRole, ...] = (NodeRole.PRIMARY, NodeRole.SECONDARY, NodeRole.BACKUP)


@dataclass
class CheckContext:
    """Everything a check may touch."""

    config: FleetConfig
    executor: CommandExecutor


class Check(ABC):
    """One unit of verification against the fleet.

    ``applicable_roles`` of None means the check is cluster-global rather
    than per-node. Destructive checks only run when the fleet opts in.
    """

    name: str = ""
    description: str = ""
    applicable_roles: tuple[NodeRole, ...] | None = None
    destructive: bool = False

    @abstractmethod
    async def run(self, ctx: CheckContext) -> list[CheckResult]:
        """Run the check. May return one result per node."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


PerNodeCheck = Callable[[CheckContext, NodeConfig], Awaitable[CheckResult]]


def elapsed_ms(started: float) -> int:
    """Milliseconds since ``started`` (a ``time.monotonic()`` value)."""
    return int((time.monotonic() - started) * 1000)


async def run_on_nodes(
    ctx: CheckContext,
    check_name: str,
    applicable_roles: Sequence[NodeRole] | None,
    per_node: PerNodeCheck,
) -> list[CheckResult]:
    """Run ``per_node`` concurrently on every applicable node.

    All nodes run to completion. A node whose function raises gets a
    failing result instead of the exception.

    Args:
        ctx: Check context
        check_name: Name used for results synthesized from exceptions
        applicable_roles: Role filter (None or empty means all nodes)
        per_node: Coroutine function producing one node's result

    Returns:
        One result per node, in node order
    """
    nodes = (
        ctx.config.nodes_with_role(*applicable_roles)
        if applicable_roles
        else list(ctx.config.nodes)
    )

    async def guarded(node: NodeConfig) -> CheckResult:
        started = time.monotonic()
        try:
            return await per_node(ctx, node)
        except Exception as e:
            logger.warning("%s raised on %s: %s", check_name, node.name, e)
            return CheckResult(
                name=check_name,
                node=node.name,
                passed=False,
                message=f"error: {e}",
                duration_ms=elapsed_ms(started),
            )

    return list(await asyncio.gather(*(guarded(node) for node in nodes)))
