"""Fleet checks and the engine that runs them."""

from fleet_validator.checks.base import ALL_ROLES, Check, CheckContext, run_on_nodes
from fleet_validator.checks.engine import CheckGroup, ValidationEngine, ValidationResult
from fleet_validator.checks.height_increasing import HeightIncreasingCheck
from fleet_validator.checks.replica_state_root import ReplicaStateRootCheck
from fleet_validator.checks.wait_deployment import WaitDeploymentCheck


def default_check_groups() -> list[CheckGroup]:
    """Deployment must settle before the liveness and consistency checks run."""
    return [
        [WaitDeploymentCheck()],
        [HeightIncreasingCheck(), ReplicaStateRootCheck()],
    ]


__all__ = [
    "ALL_ROLES",
    "Check",
    "CheckContext",
    "CheckGroup",
    "HeightIncreasingCheck",
    "ReplicaStateRootCheck",
    "ValidationEngine",
    "ValidationResult",
    "WaitDeploymentCheck",
    "default_check_groups",
    "run_on_nodes",
]
