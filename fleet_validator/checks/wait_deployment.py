"""Wait for the ansible-pull deployment to finish on every node."""

import asyncio
import logging
import time

from fleet_validator.checks.ansible_log import (
    RUN_START_MARKER,
    DeploymentState,
    DeploymentSummary,
    parse_deployment_log,
)
from fleet_validator.checks.base import ALL_ROLES, Check, CheckContext, elapsed_ms, run_on_nodes
from fleet_validator.errors import FleetValidatorError
from fleet_validator.models import CheckResult, NodeConfig
from fleet_validator.utils.shell import quote_arg

logger = logging.getLogger(__name__)

DEPLOYMENT_LOG = "/var/log/ansible-pull.log"
POLL_INTERVAL = 10.0
MAX_WAIT = 600.0
SERVICE_NAME = "sov-rollup"


def read_log_command(path: str = DEPLOYMENT_LOG) -> str:
    """Print the log from its last run-start line to the end.

    Reading backwards up to the marker keeps long runs whole no matter how
    many lines they wrote. A log without the marker is printed in full.
    """
    stop_at_run_start = f"/{RUN_START_MARKER}/q"
    return f"sudo -n tac {quote_arg(path)} | sed {quote_arg(stop_at_run_start)} | tac"


def service_status_command(service: str = SERVICE_NAME) -> str:
    return f"systemctl is-active {quote_arg(service)}"


class WaitDeploymentCheck(Check):
    """Poll the deployment log until the latest run has finished.

    A failed recap fails the node at once. A successful recap is followed
    by one service probe. Nodes that cannot be reached yet are treated as
    still booting.
    """

    name = "wait-deployment"
    description = "Wait for ansible deployment to complete on all nodes"
    applicable_roles = ALL_ROLES

    def __init__(
        self,
        poll_interval: float = POLL_INTERVAL,
        max_wait: float = MAX_WAIT,
        log_path: str = DEPLOYMENT_LOG,
        service: str = SERVICE_NAME,
    ) -> None:
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.log_path = log_path
        self.service = service

    async def run(self, ctx: CheckContext) -> list[CheckResult]:
        logger.info("Waiting for deployment to complete on all nodes...")
        return await run_on_nodes(ctx, self.name, self.applicable_roles, self._run_on_node)

    async def _run_on_node(self, ctx: CheckContext, node: NodeConfig) -> CheckResult:
        started = time.monotonic()
        deadline = started + self.max_wait

        while True:
            summary = await self._poll(ctx, node)

            if summary is not None and summary.state is DeploymentState.FAILED:
                return self._result(
                    node, False, f"deployment failed: {summary.describe()}", started
                )

            if summary is not None and summary.state is DeploymentState.SUCCEEDED:
                return await self._check_service(ctx, node, summary, started)

            if time.monotonic() + self.poll_interval > deadline:
                return self._result(
                    node, False, f"timed out after {self.max_wait:g}s", started
                )

            logger.info(
                "[%s] still waiting... (%ds)", node.name, int(time.monotonic() - started)
            )
            await asyncio.sleep(self.poll_interval)

    async def _poll(self, ctx: CheckContext, node: NodeConfig) -> DeploymentSummary | None:
        """Latest deployment summary, or None while the node is unreachable."""
        try:
            result = await ctx.executor.exec(node.name, read_log_command(self.log_path))
        except (FleetValidatorError, OSError) as e:
            # Instance may still be initializing
            logger.debug("[%s] log read failed: %s", node.name, e)
            return None

        if result.exit_code != 0:
            logger.debug("[%s] log not readable yet (exit %d)", node.name, result.exit_code)
            return None
        return parse_deployment_log(result.stdout)

    async def _check_service(
        self,
        ctx: CheckContext,
        node: NodeConfig,
        summary: DeploymentSummary,
        started: float,
    ) -> CheckResult:
        try:
            result = await ctx.executor.exec(node.name, service_status_command(self.service))
        except (FleetValidatorError, OSError) as e:
            return self._result(
                node, False, f"failed to query {self.service}: {e}", started
            )

        status = result.stdout.strip()
        if result.exit_code == 0 and status == "active":
            return self._result(
                node, True, f"deployment succeeded ({summary.describe()}), {self.service} is active", started
            )
        return self._result(
            node,
            False,
            f"deployment succeeded but {self.service} is {status or 'unknown'}",
            started,
        )

    def _result(self, node: NodeConfig, passed: bool, message: str, started: float) -> CheckResult:
        return CheckResult(
            name=self.name,
            node=node.name,
            passed=passed,
            message=message,
            duration_ms=elapsed_ms(started),
        )
