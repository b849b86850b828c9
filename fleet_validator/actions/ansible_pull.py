"""Trigger an ansible-pull self-update on every node."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from fleet_validator.errors import FleetValidatorError
from fleet_validator.models import CommandResult
from fleet_validator.protocols import CommandExecutor, StreamingExecutor
from fleet_validator.utils.shell import quote_arg

logger = logging.getLogger(__name__)

ANSIBLE_REPO = "https://github.com/Sovereign-Labs/rollup-starter-ansible.git"
DEFAULT_BRANCH = "main"

NodeOutputCallback = Callable[[str, str], None]


@dataclass
class AnsiblePullResult:
    """Outcome of ansible-pull across the fleet."""

    results: dict[str, CommandResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors and all(r.exit_code == 0 for r in self.results.values())


def ansible_pull_command(branch: str = DEFAULT_BRANCH) -> str:
    return (
        f"sudo ansible-pull -U {ANSIBLE_REPO} -C {quote_arg(branch)} "
        '-i inventory/localhost.ini -e runtime_vars_file="/tmp/runtime_vars.yaml" '
        "local.yml 2>&1"
    )


async def run_ansible_pull(
    executor: CommandExecutor,
    branch: str = DEFAULT_BRANCH,
    on_output: NodeOutputCallback | None = None,
) -> AnsiblePullResult:
    """Run ansible-pull on all nodes in parallel.

    Args:
        executor: Fleet executor
        branch: Branch of the ansible repository to check out
        on_output: Called with ``(node_name, chunk)`` as output arrives.
            Only honoured when the executor can stream.

    Returns:
        Per-node results; nodes whose command could not run are in ``errors``
    """
    command = ansible_pull_command(branch)
    streaming = on_output is not None and isinstance(executor, StreamingExecutor)
    outcome = AnsiblePullResult()

    async def pull(name: str) -> None:
        try:
            if streaming:
                result = await executor.exec_streaming(
                    name, command, lambda chunk: on_output(name, chunk)
                )
            else:
                result = await executor.exec(name, command)
        except (FleetValidatorError, OSError) as e:
            logger.error("ansible-pull failed on %s: %s", name, e)
            outcome.errors[name] = str(e)
            return

        outcome.results[name] = result
        if result.exit_code != 0:
            logger.warning("ansible-pull exited %d on %s", result.exit_code, name)

    logger.info("Running ansible-pull on all nodes (branch: %s)", branch)
    await asyncio.gather(*(pull(name) for name in executor.get_node_names()))
    return outcome
