"""Protocol interfaces for dependency inversion.

Checks and actions depend on these contracts rather than on a concrete
executor, so tests can hand them a fake.

Usage Example:

    from fleet_validator.protocols import CommandExecutor

    async def uptime_everywhere(executor: CommandExecutor):
        '''Function depends on protocol, not concrete implementation.'''
        return await executor.exec_on_all("uptime")

    # Can pass any implementation
    from fleet_validator.services import create_executor
    await uptime_everywhere(create_executor(config.nodes))

    # Or a fake for testing
    class FakeExecutor:
        async def exec(self, node_name, command):
            return CommandResult(stdout="ok", stderr="", exit_code=0)
        ...
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from fleet_validator.models import CommandResult, NodeRole


@runtime_checkable
class CommandExecutor(Protocol):
    """Protocol for running shell commands on named nodes."""

    async def exec(self, node_name: str, command: str) -> CommandResult:
        """Run a command on one node.

        Raises:
            UnknownNodeError: If the node is not part of the fleet
            TransportError: If the node cannot be reached
            CommandTimeoutError: If the command does not finish in time
        """
        ...

    async def exec_on_all(self, command: str) -> dict[str, CommandResult]:
        """Run a command on every node concurrently."""
        ...

    def get_node_names(self) -> list[str]:
        """Names of all nodes."""
        ...

    def get_nodes_by_role(self, role: NodeRole) -> list[str]:
        """Names of nodes with the given role."""
        ...

    async def close(self) -> None:
        """Release every resource held by the executor.

        Should wait for in-flight commands before tearing down transports.
        """
        ...


@runtime_checkable
class StreamingExecutor(CommandExecutor, Protocol):
    """Executor that can also deliver output incrementally."""

    async def exec_streaming(
        self,
        node_name: str,
        command: str,
        on_output: Callable[[str], None],
    ) -> CommandResult:
        """Run a command, passing output chunks to ``on_output`` as they arrive."""
        ...
