"""One-shot SSH command execution.

Every command opens its own connection and closes it afterwards; nothing
persists between calls. The connection closing is what delimits the output,
so no marker framing is needed.
"""

import asyncio
import logging
from collections.abc import Sequence

import asyncssh

from fleet_validator.config import Settings
from fleet_validator.errors import CommandTimeoutError, TransportError, TransportMismatchError
from fleet_validator.models import CommandResult, NodeConfig, SSHTransport, TransportKind
from fleet_validator.services.executor import BaseExecutor

logger = logging.getLogger(__name__)


def _decode(stream: str | bytes | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


class SSHExecutor(BaseExecutor):
    """Executor that runs each command over a fresh SSH connection."""

    transport_kind = TransportKind.SSH

    def __init__(self, nodes: Sequence[NodeConfig], settings: Settings | None = None) -> None:
        super().__init__(nodes, settings)
        if self.settings.ssh_known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED. "
                "Set FLEET_SSH_KNOWN_HOSTS to a known_hosts file to enable it."
            )

    async def exec(self, node_name: str, command: str) -> CommandResult:
        node = self._get_node(node_name)
        transport = node.transport
        if not isinstance(transport, SSHTransport):
            raise TransportMismatchError(node_name, TransportKind.SSH.value, transport.kind.value)

        timeout = self.settings.ssh_command_timeout
        try:
            return await asyncio.wait_for(self._run(node_name, transport, command), timeout)
        except TimeoutError as e:
            logger.warning("SSH command on %s timed out after %gs", node_name, timeout)
            raise CommandTimeoutError(command, timeout) from e

    async def _run(self, node_name: str, transport: SSHTransport, command: str) -> CommandResult:
        client_keys = [transport.key_path] if transport.key_path else None
        logger.debug("[%s] ssh %s: %s", node_name, transport.host, command)

        try:
            conn = await asyncssh.connect(
                transport.host,
                username=transport.user,
                known_hosts=self.settings.ssh_known_hosts,
                client_keys=client_keys,
            )
        except (OSError, asyncssh.Error) as e:
            raise TransportError(node_name, e) from e

        # Leaving the block closes the connection, including on timeout
        async with conn:
            try:
                result = await conn.run(command, check=False)
            except (OSError, asyncssh.Error) as e:
                raise TransportError(node_name, e) from e

        exit_code = result.exit_status if result.exit_status is not None else 0
        return CommandResult(
            stdout=_decode(result.stdout).strip(),
            stderr=_decode(result.stderr).strip(),
            exit_code=exit_code,
        )
