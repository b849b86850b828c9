"""Group-sequential check orchestration.

Checks inside a group run concurrently; groups run strictly in order. A
group always runs to completion, and once any result has failed no further
group is started.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from fleet_validator.checks.base import Check, CheckContext, elapsed_ms
from fleet_validator.errors import DestructiveNotAllowedError
from fleet_validator.models import CheckResult

logger = logging.getLogger(__name__)

CheckGroup = Sequence[Check]
ResultCallback = Callable[[CheckResult], None]


@dataclass
class ValidationResult:
    """Outcome of a validation run."""

    passed: int = 0
    failed: int = 0
    results: list[CheckResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class ValidationEngine:
    """Runs an explicit, ordered list of check groups."""

    def __init__(self, groups: Sequence[CheckGroup]) -> None:
        self.groups: list[list[Check]] = [list(group) for group in groups]

    def select(self, destructive: bool) -> list[list[Check]]:
        """Groups restricted to checks matching the destructive flag.

        Group order and intra-group order are kept; groups left empty are
        dropped.
        """
        selected = [
            [check for check in group if check.destructive == destructive]
            for group in self.groups
        ]
        return [group for group in selected if group]

    async def run_validation(
        self,
        ctx: CheckContext,
        destructive: bool = False,
        on_result: ResultCallback | None = None,
    ) -> ValidationResult:
        """Run the selected groups in order.

        Args:
            ctx: Check context
            destructive: Run destructive checks instead of regular ones
            on_result: Called for each result as it is recorded

        Raises:
            DestructiveNotAllowedError: If destructive checks are requested
                but the fleet does not allow them; nothing runs
        """
        groups = self.select(destructive)
        outcome = ValidationResult()
        if not groups:
            logger.info("No %s checks registered", "destructive" if destructive else "validation")
            return outcome

        if destructive and not ctx.config.settings.allow_destructive:
            raise DestructiveNotAllowedError()

        for index, group in enumerate(groups, start=1):
            logger.info(
                "Running check group %d/%d: %s",
                index,
                len(groups),
                ", ".join(check.name for check in group),
            )
            group_results = await asyncio.gather(*(self._run_check(check, ctx) for check in group))

            for results in group_results:
                for result in results:
                    outcome.results.append(result)
                    if result.passed:
                        outcome.passed += 1
                    else:
                        outcome.failed += 1
                    if on_result is not None:
                        on_result(result)

            if outcome.failed > 0:
                remaining = len(groups) - index
                if remaining:
                    logger.warning(
                        "Check group %d failed, skipping %d remaining group(s)", index, remaining
                    )
                break

        logger.info("Validation completed: %d passed, %d failed", outcome.passed, outcome.failed)
        return outcome

    @staticmethod
    async def _run_check(check: Check, ctx: CheckContext) -> list[CheckResult]:
        started = time.monotonic()
        try:
            return await check.run(ctx)
        except Exception as e:
            logger.exception("Check %s crashed", check.name)
            return [
                CheckResult(
                    name=check.name,
                    node=None,
                    passed=False,
                    message=f"error: {e}",
                    duration_ms=elapsed_ms(started),
                )
            ]
