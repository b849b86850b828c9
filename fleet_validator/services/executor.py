"""Shared executor plumbing: node bookkeeping and fan-out."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from types import TracebackType

from fleet_validator.config import Settings
from fleet_validator.errors import TransportMismatchError, UnknownNodeError
from fleet_validator.models import CommandResult, NodeConfig, NodeRole, TransportKind

logger = logging.getLogger(__name__)


class BaseExecutor(ABC):
    """Executor over a transport-homogeneous list of nodes.

    Subclasses declare the transport they speak in ``transport_kind`` and
    implement ``exec``. Construction rejects any node using another transport.
    """

    transport_kind: TransportKind

    def __init__(self, nodes: Sequence[NodeConfig], settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else Settings.from_env()
        self._nodes: dict[str, NodeConfig] = {}
        for node in nodes:
            if node.transport.kind is not self.transport_kind:
                raise TransportMismatchError(
                    node.name, self.transport_kind.value, node.transport.kind.value
                )
            self._nodes[node.name] = node

    def _get_node(self, node_name: str) -> NodeConfig:
        node = self._nodes.get(node_name)
        if node is None:
            raise UnknownNodeError(node_name)
        return node

    def get_node_names(self) -> list[str]:
        """Names of all nodes, in declaration order."""
        return list(self._nodes.keys())

    def get_nodes_by_role(self, role: NodeRole) -> list[str]:
        """Names of nodes with the given role."""
        return [name for name, node in self._nodes.items() if node.role is role]

    @abstractmethod
    async def exec(self, node_name: str, command: str) -> CommandResult:
        """Run a command on one node."""

    async def exec_on_all(self, command: str) -> dict[str, CommandResult]:
        """Run a command on every node concurrently.

        Every node runs to completion even if another one fails; the first
        failure (in node order) is raised once all of them have settled.

        Returns:
            Mapping of node name to result, in node order
        """
        names = self.get_node_names()
        outcomes = await asyncio.gather(
            *(self.exec(name, command) for name in names),
            return_exceptions=True,
        )

        results: dict[str, CommandResult] = {}
        first_error: BaseException | None = None
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Command failed on %s: %s", name, outcome)
                if first_error is None:
                    first_error = outcome
                continue
            results[name] = outcome

        if first_error is not None:
            raise first_error
        return results

    async def close(self) -> None:
        """Release all resources held by the executor."""

    async def __aenter__(self) -> "BaseExecutor":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
