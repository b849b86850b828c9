"""Persistent SSH shells.

Same framing as the SSM variant, but the shell is an asyncssh interactive
process with a pty, and there is no control plane to notify on close.
"""

import logging

import asyncssh

from fleet_validator.errors import TransportError, TransportMismatchError
from fleet_validator.models import NodeConfig, SSHTransport, TransportKind
from fleet_validator.services.framing import DISABLE_BRACKETED_PASTE
from fleet_validator.services.session import (
    READ_CHUNK_SIZE,
    SessionExecutor,
    ShellConnection,
    ShellSession,
)

logger = logging.getLogger(__name__)

TERM_TYPE = "dumb"


class SSHShell(ShellConnection):
    """Interactive shell on an asyncssh connection."""

    def __init__(
        self,
        node_name: str,
        connection: asyncssh.SSHClientConnection,
        process: asyncssh.SSHClientProcess,
        debug: bool = False,
    ) -> None:
        super().__init__(node_name, debug=debug)
        self.connection = connection
        self.process = process

    def start(self) -> None:
        # With a pty, stderr is merged into stdout by the remote terminal
        stdout = self.process.stdout
        self.start_watching(
            [(lambda: stdout.read(READ_CHUNK_SIZE), self.feed)],
            self.process.wait_closed,
        )

    async def send(self, data: str) -> None:
        self.process.stdin.write(data)
        await self.process.stdin.drain()

    async def terminate(self) -> None:
        self.process.close()
        self.connection.close()
        await self.connection.wait_closed()
        self.connection_lost()


class SSHSession(ShellSession):
    """Persistent shell on one host over SSH."""

    def _transport(self) -> SSHTransport:
        transport = self.node.transport
        if not isinstance(transport, SSHTransport):
            raise TransportMismatchError(self.name, TransportKind.SSH.value, transport.kind.value)
        return transport

    async def _open_connection(self) -> SSHShell:
        transport = self._transport()
        client_keys = [transport.key_path] if transport.key_path else None

        logger.info(
            "Opening SSH shell to %s (%s@%s)",
            self.name,
            transport.user or "<default>",
            transport.host,
        )
        try:
            connection = await asyncssh.connect(
                transport.host,
                username=transport.user,
                known_hosts=self.settings.ssh_known_hosts,
                client_keys=client_keys,
            )
        except (OSError, asyncssh.Error) as e:
            raise TransportError(self.name, e) from e

        try:
            process = await connection.create_process(term_type=TERM_TYPE)
        except (OSError, asyncssh.Error) as e:
            connection.close()
            raise TransportError(self.name, e) from e

        shell = SSHShell(self.name, connection, process, debug=self.settings.debug_session)
        shell.start()
        return shell

    async def _prepare_shell(self, conn: ShellConnection) -> None:
        await conn.wait_for_ready(self.settings.session_ready_timeout)
        await self._send_and_wait(conn, DISABLE_BRACKETED_PASTE)
        await self._install_prompt(conn)


class SSHSessionExecutor(SessionExecutor):
    """Session executor keeping one SSH shell open per node."""

    transport_kind = TransportKind.SSH

    def _create_session(self, node: NodeConfig) -> SSHSession:
        return SSHSession(node, self.settings)
