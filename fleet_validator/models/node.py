"""Fleet definition models.

These models double as the schema for the fleet YAML file. Field aliases
follow the camelCase keys used in ``hosts.yaml``; attribute access is
snake_case. All models are frozen once loaded.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, PositiveInt, model_validator


class NodeRole(str, Enum):
    """Role a node plays in the rollup deployment."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    BACKUP = "backup"


class TransportKind(str, Enum):
    """Mechanism used to reach a node."""

    SSM = "ssm"
    SSH = "ssh"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class SSMTransport(_FrozenModel):
    """AWS Session Manager target."""

    type: Literal["ssm"] = "ssm"
    instance_id: str = Field(alias="instanceId", min_length=1)
    region: str = Field(min_length=1)

    @property
    def kind(self) -> TransportKind:
        return TransportKind.SSM


class SSHTransport(_FrozenModel):
    """Plain SSH target."""

    type: Literal["ssh"] = "ssh"
    host: str = Field(min_length=1)
    user: str | None = None
    key_path: str | None = Field(default=None, alias="keyPath")

    @property
    def kind(self) -> TransportKind:
        return TransportKind.SSH


NodeTransport = Annotated[SSMTransport | SSHTransport, Field(discriminator="type")]


class NodeConfig(_FrozenModel):
    """One remote machine in the fleet."""

    name: str = Field(min_length=1)
    role: NodeRole
    transport: NodeTransport
    rpc_port: PositiveInt = Field(alias="rpcPort")


class ExternalEndpoint(_FrozenModel):
    """Public read/write endpoint pair in front of the fleet."""

    read: AnyUrl
    write: AnyUrl


class FleetSettings(_FrozenModel):
    """Fleet-level switches."""

    allow_destructive: bool = Field(alias="allowDestructive")


class FleetConfig(_FrozenModel):
    """Complete fleet definition."""

    nodes: list[NodeConfig] = Field(min_length=1)
    external: list[ExternalEndpoint] = Field(min_length=1)
    settings: FleetSettings

    @model_validator(mode="after")
    def _unique_node_names(self) -> "FleetConfig":
        seen: set[str] = set()
        for node in self.nodes:
            if node.name in seen:
                raise ValueError(f"duplicate node name: {node.name}")
            seen.add(node.name)
        return self

    def nodes_with_role(self, *roles: NodeRole) -> list[NodeConfig]:
        """Nodes whose role is one of ``roles``, in declaration order."""
        return [node for node in self.nodes if node.role in roles]
