"""Rollup height must keep increasing on every node."""

import asyncio
import logging
import time
from typing import Any

from fleet_validator.checks.base import ALL_ROLES, Check, CheckContext, elapsed_ms, run_on_nodes
from fleet_validator.checks.rpc import CHAIN_STATE_HEIGHTS_URL, RemoteQueryError, fetch_json
from fleet_validator.errors import FleetValidatorError
from fleet_validator.models import CheckResult, NodeConfig

logger = logging.getLogger(__name__)

POLL_COUNT = 3
POLL_INTERVAL = 7.0


def parse_rollup_height(payload: Any) -> int:
    """Extract the rollup height from a current-heights response.

    The endpoint answers ``{"value": [rollup_height, visible_slot_number]}``.
    """
    try:
        height = payload["value"][0]
    except (KeyError, IndexError, TypeError) as e:
        raise ValueError(f"unexpected response shape: {payload!r}") from e
    if not isinstance(height, int) or isinstance(height, bool):
        raise ValueError(f"height is not an integer: {height!r}")
    return height


def is_strictly_increasing(values: list[int]) -> bool:
    return all(later > earlier for earlier, later in zip(values, values[1:]))


class HeightIncreasingCheck(Check):
    """Sample the rollup height a few times and expect it to grow."""

    name = "height-increasing"
    description = "Verify rollup height is increasing on all nodes"
    applicable_roles = ALL_ROLES

    def __init__(self, samples: int = POLL_COUNT, interval: float = POLL_INTERVAL) -> None:
        self.samples = samples
        self.interval = interval

    async def run(self, ctx: CheckContext) -> list[CheckResult]:
        return await run_on_nodes(ctx, self.name, self.applicable_roles, self._run_on_node)

    async def _run_on_node(self, ctx: CheckContext, node: NodeConfig) -> CheckResult:
        started = time.monotonic()
        heights: list[int] = []
        error = ""

        for i in range(self.samples):
            if i > 0:
                await asyncio.sleep(self.interval)
            try:
                payload = await fetch_json(ctx.executor, node.name, CHAIN_STATE_HEIGHTS_URL)
                heights.append(parse_rollup_height(payload))
            except RemoteQueryError as e:
                error = str(e)
                break
            except (FleetValidatorError, OSError, ValueError) as e:
                error = f"failed to query height: {e}"
                break

        if error:
            logger.warning("[%s] %s: %s", node.name, self.name, error)
            return CheckResult(
                name=self.name,
                node=node.name,
                passed=False,
                message=error,
                duration_ms=elapsed_ms(started),
            )

        passed = is_strictly_increasing(heights)
        heights_str = " -> ".join(str(height) for height in heights)
        return CheckResult(
            name=self.name,
            node=node.name,
            passed=passed,
            message=(
                f"height increased: {heights_str}"
                if passed
                else f"height did not increase: {heights_str}"
            ),
            duration_ms=elapsed_ms(started),
        )
