"""Persistent interactive shell sessions.

Each node gets one long-lived shell that is reused across commands.

Locking Strategy:
- Connection mutex: serializes connection creation so concurrent first
  callers converge on a single attempt (checked once without the lock,
  then again under it)
- Command mutex: at most one command in flight per shell
- The two are independent, so a slow connection setup never blocks commands
  to another node, and close() waits on the command mutex so it never tears
  down a shell under a running command

Lifecycle:
- No connection until the first command
- Unexpected shell exit clears the cached connection; the in-flight command
  fails with ConnectionLostError and the next command reconnects
- close() is final: later commands fail fast with SessionClosedError
"""

import asyncio
import codecs
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from fleet_validator.config import Settings
from fleet_validator.errors import (
    CommandTimeoutError,
    ConnectionLostError,
    SessionClosedError,
    ShellNotReadyError,
    UnknownNodeError,
)
from fleet_validator.models import CommandResult, NodeConfig, NodeRole
from fleet_validator.services.executor import BaseExecutor
from fleet_validator.services.framing import (
    DISABLE_ECHO,
    PROMPT_SETUP,
    complete_lines,
    is_shell_ready,
    parse_command_output,
    split_at_marker,
    streamable_text,
    wrap_command,
)
from fleet_validator.services.mutex import Mutex

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]
StreamReader = Callable[[], Awaitable[str | bytes]]

READY_POLL_INTERVAL = 0.1
READ_CHUNK_SIZE = 4096


class ShellConnection(ABC):
    """One live interactive shell and the framing state over its output.

    Subclasses start a watcher with ``_watch`` that pumps the process output
    into ``feed``/``feed_stderr``, and implement ``send`` and ``terminate``.
    """

    def __init__(
        self,
        node_name: str,
        session_id: str | None = None,
        debug: bool = False,
    ) -> None:
        self.node_name = node_name
        self.session_id = session_id
        self.output_buffer = ""
        self.exited = False
        self._debug = debug
        self._pending: asyncio.Future[str] | None = None
        self._on_output: OutputCallback | None = None
        self._streamed_length = 0
        # Markers still owed by commands that timed out
        self._unclaimed_markers = 0
        self._exit_callbacks: list[Callable[[], None]] = []
        self._watch_task: asyncio.Task[None] | None = None

    @abstractmethod
    async def send(self, data: str) -> None:
        """Write raw text to the shell's input."""

    @abstractmethod
    async def terminate(self) -> None:
        """Kill the underlying process."""

    def add_exit_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback for when the shell goes away."""
        self._exit_callbacks.append(callback)

    def start_watching(
        self,
        streams: Sequence[tuple[StreamReader, Callable[[str], None]]],
        wait_closed: Callable[[], Awaitable[object]],
    ) -> None:
        """Pump ``streams`` until EOF, then wait for the process to exit."""
        self._watch_task = asyncio.create_task(self._watch(streams, wait_closed))

    async def _watch(
        self,
        streams: Sequence[tuple[StreamReader, Callable[[str], None]]],
        wait_closed: Callable[[], Awaitable[object]],
    ) -> None:
        error: Exception | None = None
        try:
            await asyncio.gather(*(self._pump(read, handler) for read, handler in streams))
            await wait_closed()
        except Exception as e:
            error = e
        self.connection_lost(error)

    @staticmethod
    async def _pump(read: StreamReader, handler: Callable[[str], None]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await read()
            if not data:
                break
            handler(data if isinstance(data, str) else decoder.decode(data))

    def feed(self, chunk: str) -> None:
        """Handle a chunk of shell stdout."""
        if self._debug:
            logger.debug("[%s] received chunk: %r", self.node_name, chunk)
        self.output_buffer += chunk
        self._stream_if_enabled()
        self._check_for_command_completion()

    def feed_stderr(self, chunk: str) -> None:
        """Handle a chunk of shell stderr."""
        if self._debug:
            logger.debug("[%s] received stderr chunk: %r", self.node_name, chunk)
        self.output_buffer += chunk

    def _stream_if_enabled(self) -> None:
        if self._on_output is None or self._unclaimed_markers:
            return
        self._deliver(streamable_text(self.output_buffer))

    def _deliver(self, text: str) -> None:
        if self._on_output is None or len(text) <= self._streamed_length:
            return
        new_content = text[self._streamed_length:]
        self._streamed_length = len(text)
        try:
            self._on_output(new_content)
        except Exception:
            logger.exception("Output callback for %s raised", self.node_name)

    def _check_for_command_completion(self) -> None:
        while True:
            split = split_at_marker(self.output_buffer)
            if split is None:
                return
            output, self.output_buffer = split

            if self._unclaimed_markers:
                # Late output of a command that already timed out
                self._unclaimed_markers -= 1
                logger.debug("[%s] discarding timed-out output: %r", self.node_name, output)
                self._streamed_length = 0
                self._stream_if_enabled()
                continue

            pending = self._pending
            if pending is None or pending.done():
                logger.debug("[%s] discarding unclaimed output: %r", self.node_name, output)
                continue

            if self._debug:
                logger.debug("[%s] marker found at line start, output: %r", self.node_name, output)
            pending.set_result(output)

    def connection_lost(self, error: BaseException | None = None) -> None:
        """Mark the shell as gone and fail any outstanding command.

        Complete lines not yet streamed are delivered before the command's
        future is rejected.
        """
        if self.exited:
            return
        self.exited = True

        if error is not None:
            logger.warning("Shell for %s failed: %s", self.node_name, error)
        else:
            logger.info("Shell for %s exited", self.node_name)

        if not self._unclaimed_markers:
            self._deliver(complete_lines(self.output_buffer))
        self._on_output = None

        pending = self._pending
        if pending is not None and not pending.done():
            lost = ConnectionLostError(self.node_name)
            lost.__cause__ = error
            pending.set_exception(lost)

        for callback in self._exit_callbacks:
            callback()

    async def wait_for_ready(self, timeout: float) -> None:
        """Wait until the shell shows a prompt, then clear the buffer.

        Raises:
            ShellNotReadyError: If no prompt appears within ``timeout``
            ConnectionLostError: If the shell exits while waiting
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not is_shell_ready(self.output_buffer):
            if self.exited:
                raise ConnectionLostError(self.node_name)
            if loop.time() >= deadline:
                raise ShellNotReadyError(self.node_name, timeout)
            await asyncio.sleep(READY_POLL_INTERVAL)
        self.output_buffer = ""

    async def run(
        self,
        command: str,
        timeout: float,
        on_output: OutputCallback | None = None,
    ) -> CommandResult:
        """Run one command and wait for the marker prompt.

        Callers must hold the session's command mutex.

        Raises:
            CommandTimeoutError: If the marker does not appear in time
            ConnectionLostError: If the shell exits first
        """
        if self.exited:
            raise ConnectionLostError(self.node_name)

        pending: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._pending = pending
        if on_output is not None:
            self._streamed_length = 0
            self._on_output = on_output

        try:
            await self.send(wrap_command(command))
            raw = await asyncio.wait_for(pending, timeout)
        except TimeoutError as e:
            self._unclaimed_markers += 1
            logger.warning("Command on %s timed out after %gs: %s", self.node_name, timeout, command)
            raise CommandTimeoutError(command, timeout) from e
        except OSError as e:
            raise ConnectionLostError(self.node_name) from e
        finally:
            self._pending = None
            self._on_output = None

        return parse_command_output(raw, command)


class ShellSession(ABC):
    """Lazily connected, reusable shell for one node."""

    def __init__(self, node: NodeConfig, settings: Settings) -> None:
        self.node = node
        self.settings = settings
        self._connection: asyncio.Task[ShellConnection] | None = None
        self._connection_mutex = Mutex()
        self._command_mutex = Mutex()
        self._closed = False

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def role(self) -> NodeRole:
        return self.node.role

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def _open_connection(self) -> ShellConnection:
        """Spawn the transport process and start watching its output."""

    @abstractmethod
    async def _prepare_shell(self, conn: ShellConnection) -> None:
        """Transport-specific handshake ending with ``_install_prompt``."""

    async def _release(self, conn: ShellConnection) -> None:
        """Release remote resources after the process has been killed."""

    async def exec(self, command: str, on_output: OutputCallback | None = None) -> CommandResult:
        """Run a command, connecting first if needed."""
        conn = await self._get_or_create_connection()
        return await self._command_mutex.with_lock(
            lambda: self._exec_internal(conn, command, on_output)
        )

    async def _exec_internal(
        self,
        conn: ShellConnection,
        command: str,
        on_output: OutputCallback | None,
    ) -> CommandResult:
        logger.debug("[%s] $ %s", self.name, command)
        result = await conn.run(command, self.settings.session_command_timeout, on_output)
        logger.debug("[%s] exit %d", self.name, result.exit_code)
        return result

    async def close(self) -> None:
        """Close the session, waiting for any running command first."""
        self._closed = True
        task = self._connection
        if task is None:
            return

        async def teardown() -> None:
            try:
                conn = await asyncio.shield(task)
            except Exception as e:
                logger.debug("No live shell to close for %s: %s", self.name, e)
                return
            logger.info("Closing session to %s", self.name)
            await self._dispose(conn)

        await self._command_mutex.with_lock(teardown)

    async def _get_or_create_connection(self) -> ShellConnection:
        if self._closed:
            raise SessionClosedError(self.name)

        # Fast path: connection exists or is being created
        task = self._connection
        if task is not None:
            return await asyncio.shield(task)

        return await self._connection_mutex.with_lock(self._connect_once)

    async def _connect_once(self) -> ShellConnection:
        if self._closed:
            raise SessionClosedError(self.name)
        if self._connection is None:
            self._connection = asyncio.create_task(self._create_connection())
        return await asyncio.shield(self._connection)

    async def _create_connection(self) -> ShellConnection:
        logger.info("Opening session to %s (%s)", self.name, self.node.transport.kind.value)
        try:
            conn = await self._open_connection()
        except Exception:
            self._connection = None
            raise

        conn.add_exit_callback(lambda: self._on_connection_exit(conn))
        try:
            await self._prepare_shell(conn)
        except Exception:
            self._connection = None
            await self._dispose(conn)
            raise

        logger.info("Session to %s ready", self.name)
        return conn

    def _on_connection_exit(self, conn: ShellConnection) -> None:
        task = self._connection
        if (
            task is not None
            and task.done()
            and not task.cancelled()
            and task.exception() is None
            and task.result() is conn
        ):
            logger.info("Shell for %s went away; next command reconnects", self.name)
            self._connection = None

    async def _send_and_wait(self, conn: ShellConnection, line: str) -> None:
        # Raw write: the marker prompt is not installed yet
        await conn.send(line + "\n")
        await conn.wait_for_ready(self.settings.session_ready_timeout)

    async def _install_prompt(self, conn: ShellConnection) -> None:
        timeout = self.settings.session_ready_timeout
        await conn.run(PROMPT_SETUP, timeout)
        await conn.run(DISABLE_ECHO, timeout)

    async def _dispose(self, conn: ShellConnection) -> None:
        try:
            await conn.terminate()
        except Exception as e:
            logger.warning("Failed to stop shell for %s: %s", self.name, e)
        try:
            await self._release(conn)
        except Exception as e:
            logger.warning("Failed to release session for %s: %s", self.name, e)


class SessionExecutor(BaseExecutor):
    """Executor backed by one persistent shell per node."""

    def __init__(self, nodes: Sequence[NodeConfig], settings: Settings | None = None) -> None:
        super().__init__(nodes, settings)
        self._sessions: dict[str, ShellSession] = {
            name: self._create_session(node) for name, node in self._nodes.items()
        }

    @abstractmethod
    def _create_session(self, node: NodeConfig) -> ShellSession:
        """Build the (not yet connected) session for a node."""

    def _get_session(self, node_name: str) -> ShellSession:
        session = self._sessions.get(node_name)
        if session is None:
            raise UnknownNodeError(node_name)
        return session

    async def exec(self, node_name: str, command: str) -> CommandResult:
        return await self._get_session(node_name).exec(command)

    async def exec_streaming(
        self,
        node_name: str,
        command: str,
        on_output: OutputCallback,
    ) -> CommandResult:
        """Run a command, passing complete output lines to ``on_output`` as they arrive."""
        return await self._get_session(node_name).exec(command, on_output)

    async def close(self) -> None:
        await asyncio.gather(*(session.close() for session in self._sessions.values()))
