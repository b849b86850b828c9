"""Fleet-wide actions driven from the command line."""

from fleet_validator.actions.ansible_pull import AnsiblePullResult, ansible_pull_command, run_ansible_pull
from fleet_validator.actions.connectivity import NodeReachability, check_connectivity

__all__ = [
    "AnsiblePullResult",
    "NodeReachability",
    "ansible_pull_command",
    "check_connectivity",
    "run_ansible_pull",
]
