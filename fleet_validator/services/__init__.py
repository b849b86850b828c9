"""Services for Fleet Validator."""

from fleet_validator.services.executor import BaseExecutor
from fleet_validator.services.factory import create_executor
from fleet_validator.services.mutex import Mutex
from fleet_validator.services.session import SessionExecutor, ShellConnection, ShellSession
from fleet_validator.services.ssh_direct import SSHExecutor
from fleet_validator.services.ssh_session import SSHSessionExecutor
from fleet_validator.services.ssm_session import SSMSessionExecutor

__all__ = [
    "BaseExecutor",
    "Mutex",
    "SSHExecutor",
    "SSHSessionExecutor",
    "SSMSessionExecutor",
    "SessionExecutor",
    "ShellConnection",
    "ShellSession",
    "create_executor",
]
