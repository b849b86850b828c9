"""Tests for group-sequential check orchestration."""

import asyncio

import pytest

from fleet_validator.checks import Check, CheckContext, ValidationEngine, run_on_nodes
from fleet_validator.errors import DestructiveNotAllowedError
from fleet_validator.models import CheckResult, NodeRole


class StubCheck(Check):
    """Check returning canned verdicts and recording that it ran."""

    def __init__(self, name, verdicts=(True,), destructive=False, delay=0.0, error=None):
        self.name = name
        self.verdicts = verdicts
        self.destructive = destructive
        self.delay = delay
        self.error = error
        self.ran = False

    async def run(self, ctx):
        self.ran = True
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [
            CheckResult(name=self.name, node=f"node-{i}", passed=ok, message="", duration_ms=0)
            for i, ok in enumerate(self.verdicts)
        ]


class TestRunValidation:
    """Ordering, fail-fast between groups and policy."""

    @pytest.mark.asyncio
    async def test_failing_group_stops_later_groups(self, ctx):
        group1 = [StubCheck("a"), StubCheck("b")]
        group2 = [StubCheck("c"), StubCheck("d", verdicts=(False,))]
        group3 = [StubCheck("e")]
        engine = ValidationEngine([group1, group2, group3])

        outcome = await engine.run_validation(ctx)

        assert [r.name for r in outcome.results] == ["a", "b", "c", "d"]
        assert outcome.passed == 3
        assert outcome.failed == 1
        assert not outcome.ok
        assert not group3[0].ran

    @pytest.mark.asyncio
    async def test_group_completes_despite_failure(self, ctx):
        """A failing check does not cut short its siblings."""
        slow = StubCheck("slow", delay=0.05)
        engine = ValidationEngine([[StubCheck("fast", verdicts=(False,)), slow]])

        outcome = await engine.run_validation(ctx)

        assert [r.name for r in outcome.results] == ["fast", "slow"]
        assert outcome.failed == 1
        assert outcome.passed == 1

    @pytest.mark.asyncio
    async def test_checks_in_group_run_concurrently(self, ctx):
        engine = ValidationEngine([[StubCheck("x", delay=0.1), StubCheck("y", delay=0.1)]])

        loop = asyncio.get_running_loop()
        start = loop.time()
        await engine.run_validation(ctx)
        elapsed = loop.time() - start

        assert elapsed < 0.18, f"Expected parallel execution (~0.1s), got {elapsed:.3f}s"

    @pytest.mark.asyncio
    async def test_results_keep_check_order_within_group(self, ctx):
        engine = ValidationEngine([[StubCheck("slow", delay=0.05), StubCheck("fast")]])

        outcome = await engine.run_validation(ctx)

        assert [r.name for r in outcome.results] == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_on_result_called_per_result(self, ctx):
        engine = ValidationEngine([[StubCheck("a", verdicts=(True, False, True))]])
        seen = []

        outcome = await engine.run_validation(ctx, on_result=seen.append)

        assert seen == outcome.results
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_crashing_check_becomes_failure(self, ctx):
        engine = ValidationEngine([[StubCheck("boom", error=RuntimeError("kaput")), StubCheck("ok")]])

        outcome = await engine.run_validation(ctx)

        crash = outcome.results[0]
        assert crash.name == "boom"
        assert crash.node is None
        assert not crash.passed
        assert crash.message == "error: kaput"
        assert outcome.passed == 1

    @pytest.mark.asyncio
    async def test_destructive_filtering(self, make_fleet, executor):
        fleet = make_fleet(("node-0", "primary"), allow_destructive=True)
        ctx = CheckContext(config=fleet, executor=executor)
        regular = StubCheck("regular")
        chaos = StubCheck("chaos", destructive=True)
        engine = ValidationEngine([[regular, chaos]])

        outcome = await engine.run_validation(ctx, destructive=True)

        assert [r.name for r in outcome.results] == ["chaos"]
        assert not regular.ran

    @pytest.mark.asyncio
    async def test_destructive_requires_opt_in(self, ctx):
        chaos = StubCheck("chaos", destructive=True)
        engine = ValidationEngine([[StubCheck("regular")], [chaos]])

        with pytest.raises(DestructiveNotAllowedError):
            await engine.run_validation(ctx, destructive=True)

        assert not chaos.ran

    @pytest.mark.asyncio
    async def test_no_matching_checks(self, ctx):
        engine = ValidationEngine([[StubCheck("regular")]])

        outcome = await engine.run_validation(ctx, destructive=True)

        assert outcome.results == []
        assert outcome.ok

    def test_select_drops_empty_groups(self):
        a, b, c = StubCheck("a"), StubCheck("b", destructive=True), StubCheck("c")
        engine = ValidationEngine([[a, b], [b], [c]])

        assert engine.select(destructive=False) == [[a], [c]]
        assert engine.select(destructive=True) == [[b], [b]]


class TestRunOnNodes:
    """Per-node fan-out helper."""

    @pytest.mark.asyncio
    async def test_all_nodes_without_filter(self, ctx):
        async def per_node(ctx, node):
            return CheckResult("per-node", node.name, True, "ok", 0)

        results = await run_on_nodes(ctx, "per-node", None, per_node)

        assert [r.node for r in results] == ["node-0", "node-1", "node-2"]

    @pytest.mark.asyncio
    async def test_role_filter(self, ctx):
        async def per_node(ctx, node):
            return CheckResult("per-node", node.name, True, "ok", 0)

        results = await run_on_nodes(ctx, "per-node", (NodeRole.SECONDARY, NodeRole.BACKUP), per_node)

        assert [r.node for r in results] == ["node-1", "node-2"]

    @pytest.mark.asyncio
    async def test_exception_becomes_failing_result(self, ctx):
        finished = []

        async def per_node(ctx, node):
            await asyncio.sleep(0.01)
            if node.name == "node-1":
                raise RuntimeError("no route to host")
            finished.append(node.name)
            return CheckResult("per-node", node.name, True, "ok", 0)

        results = await run_on_nodes(ctx, "per-node", None, per_node)

        assert finished == ["node-0", "node-2"]
        assert results[1].passed is False
        assert results[1].node == "node-1"
        assert results[1].message == "error: no route to host"
