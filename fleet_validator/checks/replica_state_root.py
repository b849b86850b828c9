"""Replicas must agree with the primary on the latest state root."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from fleet_validator.checks.base import Check, CheckContext, elapsed_ms
from fleet_validator.checks.rpc import LEDGER_LATEST_SLOT_URL, RemoteQueryError, fetch_json
from fleet_validator.models import CheckResult, NodeConfig, NodeRole

logger = logging.getLogger(__name__)

RETRY_TIMEOUT = 0.3
RETRY_INTERVAL = 0.05
ROOT_PREFIX_LENGTH = 16


@dataclass(frozen=True)
class LedgerSlot:
    """Latest ledger slot as reported by a node."""

    number: int
    state_root: str

    @classmethod
    def from_payload(cls, payload: Any) -> "LedgerSlot":
        try:
            return cls(number=int(payload["number"]), state_root=str(payload["state_root"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"unexpected slot response: {payload!r}") from e


async def query_latest_slot(ctx: CheckContext, node_name: str) -> LedgerSlot | None:
    """Latest slot of a node, or None if the HTTP query failed or was malformed.

    Transport errors propagate.
    """
    try:
        payload = await fetch_json(ctx.executor, node_name, LEDGER_LATEST_SLOT_URL)
        return LedgerSlot.from_payload(payload)
    except (RemoteQueryError, ValueError) as e:
        logger.debug("[%s] latest slot query failed: %s", node_name, e)
        return None


class ReplicaStateRootCheck(Check):
    """Compare each replica's latest slot and state root with the primary's."""

    name = "replica-state-root"
    description = "Verify replica state root matches primary"

    def __init__(self, retry_timeout: float = RETRY_TIMEOUT, retry_interval: float = RETRY_INTERVAL) -> None:
        self.retry_timeout = retry_timeout
        self.retry_interval = retry_interval

    async def run(self, ctx: CheckContext) -> list[CheckResult]:
        primaries = ctx.config.nodes_with_role(NodeRole.PRIMARY)
        replicas = ctx.config.nodes_with_role(NodeRole.SECONDARY, NodeRole.BACKUP)
        if not primaries or not replicas:
            logger.info("%s skipped: needs a primary and at least one replica", self.name)
            return []

        primary = primaries[0]
        try:
            primary_slot = await query_latest_slot(ctx, primary.name)
        except Exception as e:
            logger.warning("Querying primary %s failed: %s", primary.name, e)
            primary_slot = None

        if primary_slot is None:
            return [
                self._result(replica, False, f"failed to query primary {primary.name}", 0)
                for replica in replicas
            ]

        return list(
            await asyncio.gather(
                *(self._check_replica(ctx, replica, primary_slot) for replica in replicas)
            )
        )

    async def _check_replica(
        self,
        ctx: CheckContext,
        replica: NodeConfig,
        primary_slot: LedgerSlot,
    ) -> CheckResult:
        started = time.monotonic()

        try:
            replica_slot = await query_latest_slot(ctx, replica.name)
            retry_started = time.monotonic()
            # The replica may simply lag a little behind the primary
            while replica_slot is not None and replica_slot.number < primary_slot.number:
                if time.monotonic() - retry_started > self.retry_timeout:
                    break
                await asyncio.sleep(self.retry_interval)
                replica_slot = await query_latest_slot(ctx, replica.name)
        except Exception as e:
            return self._result(replica, False, f"error: {e}", elapsed_ms(started))

        duration = elapsed_ms(started)
        if replica_slot is None:
            return self._result(replica, False, "failed to query replica", duration)

        if replica_slot.number < primary_slot.number:
            return self._result(
                replica,
                False,
                f"replica behind: slot {replica_slot.number} < primary slot {primary_slot.number}",
                duration,
            )

        if replica_slot.number > primary_slot.number:
            return self._result(
                replica,
                False,
                f"replica ahead: slot {replica_slot.number} > primary slot {primary_slot.number}",
                duration,
            )

        if replica_slot.state_root != primary_slot.state_root:
            return self._result(
                replica,
                False,
                f"state root mismatch at slot {primary_slot.number}: "
                f"primary={primary_slot.state_root[:ROOT_PREFIX_LENGTH]}..., "
                f"replica={replica_slot.state_root[:ROOT_PREFIX_LENGTH]}...",
                duration,
            )

        return self._result(
            replica, True, f"state root matches at slot {primary_slot.number}", duration
        )

    def _result(self, node: NodeConfig, passed: bool, message: str, duration_ms: int) -> CheckResult:
        return CheckResult(
            name=self.name,
            node=node.name,
            passed=passed,
            message=message,
            duration_ms=duration_ms,
        )
