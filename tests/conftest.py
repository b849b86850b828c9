"""Shared fixtures: fleet definitions and a scripted executor."""

import pytest

from fleet_validator.checks import CheckContext
from fleet_validator.models import CommandResult, FleetConfig, NodeRole


def ok(stdout: str = "", exit_code: int = 0) -> CommandResult:
    return CommandResult(stdout=stdout, stderr="", exit_code=exit_code)


class ScriptedExecutor:
    """In-memory executor answering from per-(node, command) scripts.

    Each script is a list of outcomes consumed in order; the last one keeps
    being returned. An outcome may be a CommandResult or an exception.
    """

    def __init__(self, config: FleetConfig) -> None:
        self.config = config
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._scripts: dict[tuple[str, str], list] = {}

    def script(self, node_name: str, command: str, *outcomes) -> None:
        self._scripts[(node_name, command)] = list(outcomes)

    async def exec(self, node_name: str, command: str) -> CommandResult:
        self.calls.append((node_name, command))
        outcomes = self._scripts.get((node_name, command))
        if not outcomes:
            raise AssertionError(f"unscripted command on {node_name}: {command}")
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def exec_on_all(self, command: str) -> dict[str, CommandResult]:
        return {name: await self.exec(name, command) for name in self.get_node_names()}

    def get_node_names(self) -> list[str]:
        return [node.name for node in self.config.nodes]

    def get_nodes_by_role(self, role: NodeRole) -> list[str]:
        return [node.name for node in self.config.nodes if node.role is role]

    def commands_for(self, node_name: str) -> list[str]:
        return [command for name, command in self.calls if name == node_name]

    async def close(self) -> None:
        self.closed = True


def ssm_node_dict(name: str, role: str = "primary", region: str = "us-east-1") -> dict:
    return {
        "name": name,
        "role": role,
        "transport": {"type": "ssm", "instanceId": f"i-{name}", "region": region},
        "rpcPort": 12346,
    }


def ssh_node_dict(name: str, role: str = "primary") -> dict:
    return {
        "name": name,
        "role": role,
        "transport": {"type": "ssh", "host": f"{name}.internal", "user": "ubuntu"},
        "rpcPort": 12346,
    }


def fleet_dict(nodes: list[dict], allow_destructive: bool = False) -> dict:
    return {
        "nodes": nodes,
        "external": [{"read": "http://rollup.example:12346", "write": "http://rollup.example:12346"}],
        "settings": {"allowDestructive": allow_destructive},
    }


@pytest.fixture
def make_fleet():
    """Build a FleetConfig from ``(name, role)`` pairs of SSM nodes."""

    def _make(*nodes: tuple[str, str], allow_destructive: bool = False) -> FleetConfig:
        raw = fleet_dict(
            [ssm_node_dict(name, role) for name, role in nodes],
            allow_destructive=allow_destructive,
        )
        return FleetConfig.model_validate(raw)

    return _make


@pytest.fixture
def fleet(make_fleet) -> FleetConfig:
    """Primary plus two replicas."""
    return make_fleet(("node-0", "primary"), ("node-1", "secondary"), ("node-2", "backup"))


@pytest.fixture
def executor(fleet) -> ScriptedExecutor:
    return ScriptedExecutor(fleet)


@pytest.fixture
def ctx(fleet, executor) -> CheckContext:
    return CheckContext(config=fleet, executor=executor)


@pytest.fixture
def result():
    """Shorthand for building CommandResults."""
    return ok
