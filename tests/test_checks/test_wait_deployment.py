"""Tests for the wait-deployment check."""

import shutil
import subprocess

import pytest

from fleet_validator.checks.ansible_log import DeploymentState, parse_deployment_log
from fleet_validator.checks.wait_deployment import (
    WaitDeploymentCheck,
    read_log_command,
    service_status_command,
)
from fleet_validator.errors import ShellNotReadyError, TransportError

READ_LOG = read_log_command()
SERVICE = service_status_command()

SUCCESS_LOG = """Starting Ansible Pull at 2024-05-01 10:00:00
TASK [rollup : start service] ****
changed: [localhost]

PLAY RECAP *********************************************************************
localhost                  : ok=42   changed=7    unreachable=0    failed=0    skipped=3
"""

FAILED_LOG = """Starting Ansible Pull at 2024-05-01 10:00:00
TASK [rollup : install binary] ****
fatal: [localhost]: FAILED! => {"msg": "download failed"}

PLAY RECAP *********************************************************************
localhost                  : ok=10   changed=2    unreachable=0    failed=1    skipped=0
"""

RUNNING_LOG = """Starting Ansible Pull at 2024-05-01 10:00:00
TASK [rollup : install binary] ****
"""


@pytest.fixture
def check():
    return WaitDeploymentCheck(poll_interval=0.01, max_wait=0.1)


def script_all(executor, command, *outcomes):
    for name in executor.get_node_names():
        executor.script(name, command, *outcomes)


def test_commands():
    assert READ_LOG == (
        "sudo -n tac /var/log/ansible-pull.log | sed '/Starting Ansible Pull at/q' | tac"
    )
    assert SERVICE == "systemctl is-active sov-rollup"


def long_successful_run(tasks: int = 300) -> str:
    lines = ["Starting Ansible Pull at 2024-05-01 11:00:00"]
    for index in range(tasks):
        lines += [f"TASK [rollup : step {index}] ****", "ok: [localhost]", ""]
    lines += [
        "PLAY RECAP *********************************************************************",
        f"localhost                  : ok={tasks}   changed=0    unreachable=0    failed=0",
    ]
    return "\n".join(lines) + "\n"


@pytest.mark.skipif(not (shutil.which("tac") and shutil.which("sed")), reason="needs tac and sed")
def test_log_command_reads_whole_latest_run(tmp_path):
    log = tmp_path / "ansible-pull.log"
    latest = long_successful_run()
    log.write_text(FAILED_LOG + latest)
    # Same pipeline without privilege escalation
    command = read_log_command(str(log)).removeprefix("sudo -n ")

    output = subprocess.run(["sh", "-c", command], capture_output=True, text=True, check=True).stdout

    assert len(latest.splitlines()) > 500
    assert output == latest
    assert parse_deployment_log(output).state is DeploymentState.SUCCEEDED


class TestWaitDeploymentCheck:
    @pytest.mark.asyncio
    async def test_success_with_active_service(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(SUCCESS_LOG))
        script_all(executor, SERVICE, result("active"))

        results = await check.run(ctx)

        assert [r.node for r in results] == ["node-0", "node-1", "node-2"]
        assert all(r.passed for r in results)
        assert results[0].name == "wait-deployment"
        assert results[0].message == (
            "deployment succeeded (ok=42 changed=7 unreachable=0 failed=0), sov-rollup is active"
        )

    @pytest.mark.asyncio
    async def test_long_successful_run_passes(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(long_successful_run().rstrip()))
        script_all(executor, SERVICE, result("active"))

        results = await check.run(ctx)

        assert all(r.passed for r in results)
        assert results[0].message == (
            "deployment succeeded (ok=300 changed=0 unreachable=0 failed=0), sov-rollup is active"
        )

    @pytest.mark.asyncio
    async def test_keeps_polling_while_in_progress(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(RUNNING_LOG), result(RUNNING_LOG), result(SUCCESS_LOG))
        script_all(executor, SERVICE, result("active"))

        results = await check.run(ctx)

        assert all(r.passed for r in results)
        assert executor.commands_for("node-0") == [READ_LOG, READ_LOG, READ_LOG, SERVICE]

    @pytest.mark.asyncio
    async def test_failed_recap_fails_immediately(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(SUCCESS_LOG))
        script_all(executor, SERVICE, result("active"))
        executor.script("node-1", READ_LOG, result(FAILED_LOG))

        results = await check.run(ctx)

        assert [r.passed for r in results] == [True, False, True]
        assert results[1].message == "deployment failed: ok=10 changed=2 unreachable=0 failed=1"
        assert executor.commands_for("node-1") == [READ_LOG]

    @pytest.mark.asyncio
    async def test_inactive_service_fails(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(SUCCESS_LOG))
        script_all(executor, SERVICE, result("inactive", exit_code=3))

        results = await check.run(ctx)

        assert not results[0].passed
        assert results[0].message == "deployment succeeded but sov-rollup is inactive"

    @pytest.mark.asyncio
    async def test_times_out(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(RUNNING_LOG))

        results = await check.run(ctx)

        assert not any(r.passed for r in results)
        assert results[0].message == "timed out after 0.1s"
        assert SERVICE not in executor.commands_for("node-0")

    @pytest.mark.asyncio
    async def test_unreachable_node_counts_as_booting(self, check, ctx, executor, result):
        booting = ShellNotReadyError("node-0", 30)
        script_all(
            executor,
            READ_LOG,
            TransportError("node-0", RuntimeError("TargetNotConnected")),
            booting,
            result(SUCCESS_LOG),
        )
        script_all(executor, SERVICE, result("active"))

        results = await check.run(ctx)

        assert all(r.passed for r in results)

    @pytest.mark.asyncio
    async def test_missing_log_counts_as_in_progress(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result("", exit_code=1), result(SUCCESS_LOG))
        script_all(executor, SERVICE, result("active"))

        results = await check.run(ctx)

        assert all(r.passed for r in results)

    @pytest.mark.asyncio
    async def test_service_query_error(self, check, ctx, executor, result):
        script_all(executor, READ_LOG, result(SUCCESS_LOG))
        script_all(executor, SERVICE, TransportError("node-0", RuntimeError("offline")))

        results = await check.run(ctx)

        assert not results[0].passed
        assert results[0].message.startswith("failed to query sov-rollup: ")
