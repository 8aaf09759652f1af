"""YAML manifest parsing and validation for cluster descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .defaults import NodePoolConfig, ProfileDefaults
from .exceptions import ValidationError
from .models import Cluster, PoolType
from .naming import validate_name
from .resources import InstanceProfileResource


@dataclass(frozen=True)
class PoolDecl:
    """A server pool declaration."""

    name: str
    type: PoolType = PoolType.NODE
    instance_profile: bool = True
    policies: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PoolDecl:
        name = d.get("name", "")
        validate_name(name, "server_pool")
        try:
            pool_type = PoolType(d.get("type", PoolType.NODE.value))
        except ValueError as e:
            raise ValidationError("type", d.get("type"), "Must be 'master' or 'node'") from e
        policies = d.get("policies") or []
        if not isinstance(policies, list):
            raise ValidationError("policies", policies, "Must be a list")
        return cls(
            name=name,
            type=pool_type,
            instance_profile=bool(d.get("instance_profile", True)),
            policies=tuple(policies),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "type": self.type.value}
        if not self.instance_profile:
            result["instance_profile"] = False
        if self.policies:
            result["policies"] = list(self.policies)
        return result


@dataclass(frozen=True)
class ClusterManifest:
    """Parsed YAML manifest describing a cluster and its server pools."""

    cluster: str
    defaults: ProfileDefaults = field(default_factory=ProfileDefaults)
    server_pools: tuple[PoolDecl, ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ClusterManifest:
        cluster = d.get("cluster")
        if not cluster:
            raise ValidationError("cluster", cluster, "'cluster' is required in manifest")
        validate_name(cluster, "cluster")

        pools = tuple(PoolDecl.from_dict(p) for p in d.get("server_pools") or [])
        names = [p.name for p in pools]
        if len(names) != len(set(names)):
            raise ValidationError("server_pools", names, "Server pool names must be unique")

        return cls(
            cluster=cluster,
            defaults=ProfileDefaults.from_dict(d.get("defaults")),
            server_pools=pools,
        )

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ClusterManifest:
        import yaml

        data = yaml.safe_load(yaml_str)
        if not isinstance(data, dict):
            raise ValidationError("manifest", type(data).__name__, "Expected a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster": self.cluster,
            "defaults": self.defaults.to_dict(),
            "server_pools": [p.to_dict() for p in self.server_pools],
        }

    def build_cluster(self) -> Cluster:
        """Initial cluster value, with pools sized from the defaults."""
        return Cluster(
            name=self.cluster,
            server_pools=tuple(
                self.defaults.server_pool(p.name, p.type) for p in self.server_pools
            ),
        )

    def pool_configs(self) -> list[NodePoolConfig]:
        """Resolved desired state for every pool that needs a profile."""
        return [
            NodePoolConfig.resolve(self.cluster, p.name, p.type, list(p.policies))
            for p in self.server_pools
            if p.instance_profile
        ]

    def resources(self) -> list[InstanceProfileResource]:
        return [InstanceProfileResource(config) for config in self.pool_configs()]
