"""Exception hierarchy for Fleet Validator.

Configuration, factory and policy errors are fatal for a run. Transport and
protocol errors are raised to the caller of a single command and never abort
sibling nodes.
"""


class FleetValidatorError(Exception):
    """Base class for all Fleet Validator errors."""


class ConfigError(FleetValidatorError):
    """Fleet definition is missing or fails schema validation."""


class NoNodesError(FleetValidatorError):
    """Executor requested for an empty node list."""

    def __init__(self) -> None:
        super().__init__("No nodes provided")


class MixedTransportError(FleetValidatorError):
    """Fleet declares more than one transport kind."""

    def __init__(self, kinds: list[str]):
        """Initialize mixed transport error.

        Args:
            kinds: Distinct transport kinds found, in declaration order
        """
        self.kinds = kinds
        super().__init__(
            f"Mixed transport types not supported. Found: {', '.join(kinds)}. "
            "All nodes must use the same transport type."
        )


class TransportMismatchError(FleetValidatorError):
    """Node handed to an executor that does not speak its transport."""

    def __init__(self, node_name: str, expected: str, actual: str):
        self.node_name = node_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Executor only supports {expected} transport, "
            f"but {node_name} uses {actual}"
        )


class UnknownNodeError(FleetValidatorError):
    """Command addressed to a node that is not part of the fleet."""

    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(f"Unknown node: {node_name}")


class TransportError(FleetValidatorError):
    """Failed to establish or drive the transport for a node."""

    def __init__(self, node_name: str, original_error: Exception):
        """Initialize transport error.

        Args:
            node_name: Name of the node
            original_error: Original exception that caused the failure
        """
        self.node_name = node_name
        self.original_error = original_error
        super().__init__(f"Cannot connect to {node_name}: {original_error}")


class ShellNotReadyError(FleetValidatorError):
    """Interactive shell never showed a prompt."""

    def __init__(self, node_name: str, timeout: float):
        self.node_name = node_name
        self.timeout = timeout
        super().__init__(
            f"Timeout waiting for shell to be ready on {node_name} "
            f"after {timeout:g}s"
        )


class CommandTimeoutError(FleetValidatorError):
    """Command did not complete within its timeout."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {command}")


class SessionClosedError(FleetValidatorError):
    """Command issued to a session that has been closed."""

    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(f"Session {node_name} is closed")


class ConnectionLostError(FleetValidatorError):
    """Shell process exited while a command was outstanding."""

    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(f"Connection to {node_name} was lost")


class DestructiveNotAllowedError(FleetValidatorError):
    """Destructive checks requested without the fleet opt-in."""

    def __init__(self) -> None:
        super().__init__(
            "Destructive checks require allowDestructive: true in config"
        )
