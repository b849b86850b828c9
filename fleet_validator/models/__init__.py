"""Data models for Fleet Validator."""

from fleet_validator.models.check import CheckResult
from fleet_validator.models.command import CommandResult
from fleet_validator.models.node import (
    ExternalEndpoint,
    FleetConfig,
    FleetSettings,
    NodeConfig,
    NodeRole,
    NodeTransport,
    SSHTransport,
    SSMTransport,
    TransportKind,
)

__all__ = [
    "CheckResult",
    "CommandResult",
    "ExternalEndpoint",
    "FleetConfig",
    "FleetSettings",
    "NodeConfig",
    "NodeRole",
    "NodeTransport",
    "SSHTransport",
    "SSMTransport",
    "TransportKind",
]
