"""Tests for fleet definition loading."""

from pathlib import Path

import pytest

from fleet_validator.config import load_config, parse_config
from fleet_validator.errors import ConfigError
from fleet_validator.models import NodeRole, SSHTransport, SSMTransport, TransportKind

VALID_YAML = """
nodes:
  - name: node-0
    role: primary
    transport:
      type: ssm
      instanceId: i-0abc
      region: us-east-1
    rpcPort: 12346
  - name: node-1
    role: secondary
    transport:
      type: ssm
      instanceId: i-0def
      region: us-east-1
    rpcPort: 12346
external:
  - read: http://rollup.example.com:12346
    write: http://rollup.example.com:12346
settings:
  allowDestructive: false
"""


@pytest.fixture
def hosts_file(tmp_path: Path) -> Path:
    path = tmp_path / "hosts.yaml"
    path.write_text(VALID_YAML)
    return path


def test_load_valid_config(hosts_file: Path) -> None:
    config = load_config(hosts_file)

    assert [n.name for n in config.nodes] == ["node-0", "node-1"]
    assert config.nodes[0].role is NodeRole.PRIMARY
    transport = config.nodes[0].transport
    assert isinstance(transport, SSMTransport)
    assert transport.instance_id == "i-0abc"
    assert transport.kind is TransportKind.SSM
    assert config.nodes[0].rpc_port == 12346
    assert config.settings.allow_destructive is False


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "hosts.yaml"
    path.write_text("nodes: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_ssh_transport() -> None:
    config = parse_config(
        {
            "nodes": [
                {
                    "name": "box",
                    "role": "backup",
                    "transport": {"type": "ssh", "host": "10.0.0.5", "user": "ubuntu", "keyPath": "~/.ssh/id"},
                    "rpcPort": 12346,
                }
            ],
            "external": [{"read": "http://a:1", "write": "http://a:2"}],
            "settings": {"allowDestructive": True},
        }
    )

    transport = config.nodes[0].transport
    assert isinstance(transport, SSHTransport)
    assert transport.key_path == "~/.ssh/id"
    assert config.settings.allow_destructive is True


def test_errors_list_each_field() -> None:
    """Every schema violation is reported with its dotted path."""
    raw = {
        "nodes": [
            {
                "name": "node-0",
                "role": "leader",
                "transport": {"type": "ssm", "region": "us-east-1"},
                "rpcPort": -1,
            }
        ],
        "external": [],
        "settings": {},
    }

    with pytest.raises(ConfigError) as exc_info:
        parse_config(raw)

    message = str(exc_info.value)
    assert message.startswith("Invalid config:")
    assert "nodes.0.role" in message
    assert "nodes.0.transport.ssm.instanceId" in message
    assert "nodes.0.rpcPort" in message
    assert "external" in message
    assert "settings.allowDestructive" in message


def test_unknown_transport_type() -> None:
    raw = {
        "nodes": [{"name": "n", "role": "primary", "transport": {"type": "telnet"}, "rpcPort": 1}],
        "external": [{"read": "http://a:1", "write": "http://a:2"}],
        "settings": {"allowDestructive": False},
    }

    with pytest.raises(ConfigError, match="nodes.0.transport"):
        parse_config(raw)


def test_duplicate_node_names() -> None:
    node = {
        "name": "dup",
        "role": "primary",
        "transport": {"type": "ssh", "host": "h"},
        "rpcPort": 1,
    }
    raw = {
        "nodes": [node, dict(node)],
        "external": [{"read": "http://a:1", "write": "http://a:2"}],
        "settings": {"allowDestructive": False},
    }

    with pytest.raises(ConfigError, match="duplicate node name: dup"):
        parse_config(raw)


def test_empty_document() -> None:
    with pytest.raises(ConfigError):
        parse_config(None)


def test_config_is_frozen(hosts_file: Path) -> None:
    config = load_config(hosts_file)

    with pytest.raises(Exception):
        config.nodes[0].name = "renamed"


def test_nodes_with_role(hosts_file: Path) -> None:
    config = load_config(hosts_file)

    assert [n.name for n in config.nodes_with_role(NodeRole.SECONDARY, NodeRole.BACKUP)] == ["node-1"]
