"""Core models for profile-reconciler.

Every model is a frozen dataclass. A ``Cluster`` is never mutated in place:
the ``with_*`` helpers return a new value that shares every untouched
server pool with the original.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from .exceptions import ValidationError


def normalize_document(document: str | dict[str, Any]) -> str:
    """
    Return the canonical string form of a policy document.

    JSON documents are re-serialized compactly with key order preserved so
    that a document written by the user and the same document read back from
    IAM compare equal. Anything that is not JSON is returned unchanged.
    """
    if isinstance(document, dict):
        return json.dumps(document, separators=(",", ":"))
    try:
        parsed = json.loads(document)
    except (TypeError, ValueError):
        return document
    return json.dumps(parsed, separators=(",", ":"))


# ---------------------------------------------------------------------------
# IAM resources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Shared:
    """
    Identity fields common to every resource kind.

    Attributes:
        name: Resource name, also the cloud-level name
        identifier: Provider-assigned identifier; empty until created
        tags: Traceability tags (``Name``, ``KubernetesCluster``)
    """

    name: str = ""
    identifier: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Private read-only copy; snapshots never alias a caller's dict
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def __hash__(self) -> int:
        return hash((self.name, self.identifier, tuple(sorted(self.tags.items()))))


@dataclass(frozen=True)
class Policy:
    """An inline permission document attached to a role."""

    shared: Shared
    document: str = ""

    @property
    def name(self) -> str:
        return self.shared.name


@dataclass(frozen=True)
class Role:
    """An IAM role and its inline policies, in order."""

    shared: Shared
    policies: tuple[Policy, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.policies, tuple):
            object.__setattr__(self, "policies", tuple(self.policies or ()))
        seen: set[str] = set()
        for policy in self.policies:
            if policy.name in seen:
                raise ValidationError(
                    "policy", policy.name, f"Duplicate policy name in role {self.shared.name!r}"
                )
            seen.add(policy.name)

    @property
    def name(self) -> str:
        return self.shared.name


@dataclass(frozen=True)
class InstanceProfile:
    """
    Composite resource: instance profile, its role and the role's policies.

    Attributes:
        shared: Profile identity fields
        role: The single role attached to the profile, ``None`` when absent
        server_pool: Name of the server pool this profile belongs to
    """

    shared: Shared
    role: Role | None = None
    server_pool: str | None = None

    @property
    def name(self) -> str:
        return self.shared.name

    @property
    def identifier(self) -> str:
        return self.shared.identifier

    @property
    def exists(self) -> bool:
        """True when the profile has been observed or created remotely."""
        return bool(self.shared.identifier)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for display (``show`` output)."""
        result: dict[str, Any] = {
            "name": self.name,
            "identifier": self.identifier,
            "tags": dict(self.shared.tags),
            "server_pool": self.server_pool,
            "role": None,
        }
        if self.role is not None:
            result["role"] = {
                "name": self.role.name,
                "identifier": self.role.shared.identifier,
                "policies": [
                    {"name": p.name, "document": p.document} for p in self.role.policies
                ],
            }
        return result


# ---------------------------------------------------------------------------
# Cluster state
# ---------------------------------------------------------------------------


class PoolType(str, Enum):
    """Role a server pool plays in the cluster."""

    MASTER = "master"
    NODE = "node"


@dataclass(frozen=True)
class ServerPool:
    """
    Named node-group descriptor.

    Sizing fields are resolved from the profile defaults; ``instance_profile``
    is set by rendering a reconciled resource into the cluster.
    """

    name: str
    type: PoolType = PoolType.NODE
    instance_type: str = ""
    image: str = ""
    spot_price: str = ""
    min_count: int = 0
    max_count: int = 0
    instance_profile: InstanceProfile | None = None


@dataclass(frozen=True)
class Cluster:
    """
    Immutable cluster description: a name and its ordered server pools.

    Reconciliation never modifies a Cluster. Use ``with_server_pool`` to
    obtain a new value; untouched pools are shared between the two.
    """

    name: str
    server_pools: tuple[ServerPool, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.server_pools, tuple):
            object.__setattr__(self, "server_pools", tuple(self.server_pools))
        names = [pool.name for pool in self.server_pools]
        if len(names) != len(set(names)):
            raise ValidationError("server_pools", names, "Server pool names must be unique")

    def find_server_pool(self, name: str | None) -> ServerPool | None:
        """Return the pool with the given name, or ``None``."""
        if name is None:
            return None
        for pool in self.server_pools:
            if pool.name == name:
                return pool
        return None

    def with_server_pool(self, pool: ServerPool) -> Cluster:
        """
        Return a Cluster with the same-named pool replaced by ``pool``.

        Returns ``self`` when the pool is unchanged.

        Raises:
            KeyError: If no pool with that name exists
        """
        pools = list(self.server_pools)
        for i, existing in enumerate(pools):
            if existing.name == pool.name:
                if existing == pool:
                    return self
                pools[i] = pool
                return replace(self, server_pools=tuple(pools))
        raise KeyError(pool.name)

    def with_instance_profile(
        self, pool_name: str, profile: InstanceProfile | None
    ) -> Cluster:
        """Return a Cluster whose named pool references ``profile``."""
        pool = self.find_server_pool(pool_name)
        if pool is None:
            raise KeyError(pool_name)
        return self.with_server_pool(replace(pool, instance_profile=profile))
