"""Executor selection from the fleet's declared transport."""

import logging
from collections.abc import Sequence

from fleet_validator.config import Settings
from fleet_validator.errors import MixedTransportError, NoNodesError
from fleet_validator.models import NodeConfig, TransportKind
from fleet_validator.services.executor import BaseExecutor
from fleet_validator.services.ssh_direct import SSHExecutor
from fleet_validator.services.ssh_session import SSHSessionExecutor
from fleet_validator.services.ssm_session import SSMSessionExecutor

logger = logging.getLogger(__name__)


def create_executor(
    nodes: Sequence[NodeConfig],
    settings: Settings | None = None,
) -> BaseExecutor:
    """Build the executor matching the fleet's transport.

    Args:
        nodes: Full node list
        settings: Runtime settings (default: from environment)

    Raises:
        NoNodesError: If ``nodes`` is empty
        MixedTransportError: If more than one transport kind is declared
    """
    if not nodes:
        raise NoNodesError()

    kinds = list(dict.fromkeys(node.transport.kind for node in nodes))
    if len(kinds) > 1:
        raise MixedTransportError([kind.value for kind in kinds])

    settings = settings if settings is not None else Settings.from_env()
    kind = kinds[0]

    if kind is TransportKind.SSM:
        logger.info("Using SSM session executor for %d node(s)", len(nodes))
        return SSMSessionExecutor(nodes, settings)
    if kind is TransportKind.SSH:
        if settings.ssh_persistent:
            logger.info("Using persistent SSH session executor for %d node(s)", len(nodes))
            return SSHSessionExecutor(nodes, settings)
        logger.info("Using one-shot SSH executor for %d node(s)", len(nodes))
        return SSHExecutor(nodes, settings)

    raise ValueError(f"Unknown transport type: {kind}")
