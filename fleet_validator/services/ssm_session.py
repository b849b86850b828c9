"""AWS Session Manager shells.

A session is started through the SSM control plane and rendered locally by
``session-manager-plugin``, whose stdin/stdout carry the remote terminal.
One boto3 client is created per region and shared by every node in it.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fleet_validator.config import Settings
from fleet_validator.errors import TransportError, TransportMismatchError
from fleet_validator.models import NodeConfig, SSMTransport, TransportKind
from fleet_validator.services.framing import DISABLE_BRACKETED_PASTE
from fleet_validator.services.session import (
    READ_CHUNK_SIZE,
    SessionExecutor,
    ShellConnection,
    ShellSession,
)

logger = logging.getLogger(__name__)

SESSION_MANAGER_PLUGIN = "session-manager-plugin"

ClientFactory = Callable[[str], Any]


def _default_client_factory(region: str) -> Any:
    return boto3.client("ssm", region_name=region)


class PluginShell(ShellConnection):
    """Shell rendered by a local session-manager-plugin process."""

    def __init__(
        self,
        node_name: str,
        session_id: str,
        process: asyncio.subprocess.Process,
        debug: bool = False,
    ) -> None:
        super().__init__(node_name, session_id=session_id, debug=debug)
        self.process = process

    def start(self) -> None:
        stdout, stderr = self.process.stdout, self.process.stderr
        if stdout is None or stderr is None:
            raise BrokenPipeError(f"output of {SESSION_MANAGER_PLUGIN} is not piped")
        self.start_watching(
            [
                (lambda: stdout.read(READ_CHUNK_SIZE), self.feed),
                (lambda: stderr.read(READ_CHUNK_SIZE), self.feed_stderr),
            ],
            self.process.wait,
        )

    async def send(self, data: str) -> None:
        if self.process.stdin is None:
            raise BrokenPipeError(f"stdin of {SESSION_MANAGER_PLUGIN} is not open")
        self.process.stdin.write(data.encode("utf-8"))
        await self.process.stdin.drain()

    async def terminate(self) -> None:
        if self.process.returncode is None:
            self.process.kill()
            await self.process.wait()
        self.connection_lost()


class SSMSession(ShellSession):
    """Persistent shell on one EC2 instance over Session Manager."""

    def __init__(self, node: NodeConfig, settings: Settings, client: Any) -> None:
        super().__init__(node, settings)
        self._client = client

    def _transport(self) -> SSMTransport:
        transport = self.node.transport
        if not isinstance(transport, SSMTransport):
            raise TransportMismatchError(self.name, TransportKind.SSM.value, transport.kind.value)
        return transport

    async def _open_connection(self) -> PluginShell:
        transport = self._transport()

        try:
            response = await asyncio.to_thread(
                self._client.start_session, Target=transport.instance_id
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(self.name, e) from e

        session_id = response.get("SessionId")
        stream_url = response.get("StreamUrl")
        token = response.get("TokenValue")
        if not session_id or not stream_url or not token:
            raise TransportError(
                self.name,
                RuntimeError("Failed to start SSM session: missing session details"),
            )
        logger.debug("Started SSM session %s for %s", session_id, self.name)

        session_data = json.dumps(
            {"SessionId": session_id, "StreamUrl": stream_url, "TokenValue": token}
        )
        plugin_args = [
            session_data,
            transport.region,
            "StartSession",
            "",  # profile (empty for default)
            json.dumps({"Target": transport.instance_id}),
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                SESSION_MANAGER_PLUGIN,
                *plugin_args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            await self._terminate_remote(session_id)
            raise TransportError(self.name, e) from e

        shell = PluginShell(self.name, session_id, process, debug=self.settings.debug_session)
        try:
            shell.start()
        except OSError as e:
            await shell.terminate()
            await self._terminate_remote(session_id)
            raise TransportError(self.name, e) from e
        return shell

    async def _prepare_shell(self, conn: ShellConnection) -> None:
        await conn.wait_for_ready(self.settings.session_ready_timeout)

        if self.settings.ssm_switch_user:
            await self._send_and_wait(conn, f"sudo su - {self.settings.ssm_switch_user}")

        # Bracketed paste wraps the prompt in escape sequences
        await self._send_and_wait(conn, DISABLE_BRACKETED_PASTE)

        await self._install_prompt(conn)

    async def _release(self, conn: ShellConnection) -> None:
        if conn.session_id:
            await self._terminate_remote(conn.session_id)

    async def _terminate_remote(self, session_id: str) -> None:
        try:
            await asyncio.to_thread(self._client.terminate_session, SessionId=session_id)
            logger.debug("Terminated SSM session %s for %s", session_id, self.name)
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to terminate SSM session %s: %s", session_id, e)


class SSMSessionExecutor(SessionExecutor):
    """Session executor for nodes reached through AWS Session Manager."""

    transport_kind = TransportKind.SSM

    def __init__(
        self,
        nodes: Sequence[NodeConfig],
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._client_factory = client_factory or _default_client_factory
        self._clients: dict[str, Any] = {}
        super().__init__(nodes, settings)

    def _client_for(self, region: str) -> Any:
        client = self._clients.get(region)
        if client is None:
            logger.debug("Creating SSM client for region %s", region)
            client = self._client_factory(region)
            self._clients[region] = client
        return client

    def _create_session(self, node: NodeConfig) -> SSMSession:
        transport = node.transport
        if not isinstance(transport, SSMTransport):
            raise TransportMismatchError(node.name, TransportKind.SSM.value, transport.kind.value)
        return SSMSession(node, self.settings, self._client_for(transport.region))
