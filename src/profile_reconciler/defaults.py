"""Profile defaults and desired-state resolution.

``ProfileDefaults`` holds the user-chosen cluster parameters (instance types,
images, spot price, node counts). Overrides are merged with the rule that an
empty string or a zero count means "keep the current value". The resolved
per-pool configuration is what ``InstanceProfileResource.expected`` consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from .exceptions import ValidationError
from .models import PoolType, ServerPool, normalize_document
from .naming import profile_name, role_name

DEFAULT_NODE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Action": [
                "ec2:Describe*",
                "ec2:AttachVolume",
                "ec2:DetachVolume",
                "ecr:GetAuthorizationToken",
                "ecr:BatchCheckLayerAvailability",
                "ecr:GetDownloadUrlForLayer",
                "ecr:GetRepositoryPolicy",
                "ecr:DescribeRepositories",
                "ecr:ListImages",
                "ecr:BatchGetImage",
                "autoscaling:DescribeAutoScalingGroups",
                "autoscaling:DescribeAutoScalingInstances",
            ],
            "Resource": "*",
        }
    ],
}

DEFAULT_MASTER_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Action": [
                "ec2:*",
                "elasticloadbalancing:*",
                "autoscaling:DescribeAutoScalingGroups",
                "autoscaling:DescribeAutoScalingInstances",
                "ecr:GetAuthorizationToken",
                "ecr:BatchGetImage",
                "ecr:GetDownloadUrlForLayer",
                "route53:*",
            ],
            "Resource": "*",
        }
    ],
}

DEFAULT_POLICY_NAMES = {
    PoolType.NODE: "node-policy",
    PoolType.MASTER: "master-policy",
}


@dataclass(frozen=True)
class ProfileDefaults:
    """Default cluster parameters for the Amazon cloud."""

    location: str = "eu-west-1"
    node_instance_type: str = "m4.xlarge"
    node_image: str = "ami-06d1667f"
    master_instance_type: str = "m4.xlarge"
    master_image: str = "ami-06d1667f"
    node_spot_price: str = "0.2"
    node_min_count: int = 1
    node_max_count: int = 2

    def __post_init__(self) -> None:
        if self.node_min_count < 0:
            raise ValidationError("node_min_count", self.node_min_count, "Must not be negative")
        if self.node_max_count < self.node_min_count:
            raise ValidationError(
                "node_max_count",
                self.node_max_count,
                f"Must be >= node_min_count ({self.node_min_count})",
            )

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> ProfileDefaults:
        """Build defaults from a flat mapping, merging over the built-ins."""
        return cls().update(d or {})

    def update(self, overrides: dict[str, Any]) -> ProfileDefaults:
        """
        Return a copy with ``overrides`` applied.

        Empty strings, zero counts and ``None`` leave the current value in
        place.

        Raises:
            ValidationError: If an override names an unknown field
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ValidationError("defaults", key, "Unknown profile default")
            if value is None or value == "" or value == 0:
                continue
            changes[key] = str(value) if isinstance(getattr(self, key), str) else int(value)
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_profile_response(self, profile_name: str = "default") -> dict[str, Any]:
        """Render the nested profile structure shown to users."""
        return {
            "name": profile_name,
            "location": self.location,
            "cloud": "amazon",
            "node_instance_type": self.node_instance_type,
            "properties": {
                "amazon": {
                    "node": {
                        "spot_price": self.node_spot_price,
                        "min_count": self.node_min_count,
                        "max_count": self.node_max_count,
                        "image": self.node_image,
                    },
                    "master": {
                        "instance_type": self.master_instance_type,
                        "image": self.master_image,
                    },
                },
            },
        }

    def server_pool(self, name: str, pool_type: PoolType = PoolType.NODE) -> ServerPool:
        """Resolve a server pool descriptor from these defaults."""
        if pool_type is PoolType.MASTER:
            return ServerPool(
                name=name,
                type=pool_type,
                instance_type=self.master_instance_type,
                image=self.master_image,
                min_count=1,
                max_count=1,
            )
        return ServerPool(
            name=name,
            type=pool_type,
            instance_type=self.node_instance_type,
            image=self.node_image,
            spot_price=self.node_spot_price,
            min_count=self.node_min_count,
            max_count=self.node_max_count,
        )


@dataclass(frozen=True)
class PolicySpec:
    """A desired inline policy."""

    name: str
    document: str

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PolicySpec:
        if not d.get("name"):
            raise ValidationError("policy", d, "'name' is required")
        if "document" not in d:
            raise ValidationError("policy", d["name"], "'document' is required")
        return cls(name=d["name"], document=normalize_document(d["document"]))


@dataclass(frozen=True)
class NodePoolConfig:
    """
    Fully resolved desired state for one server pool's instance profile.

    Attributes:
        pool_name: Server pool the profile belongs to
        profile_name: Instance profile name
        role_name: Role name
        policies: Inline policies, in the order they are written and compared
    """

    pool_name: str
    profile_name: str
    role_name: str
    policies: tuple[PolicySpec, ...] = ()

    @classmethod
    def resolve(
        cls,
        cluster_name: str,
        pool_name: str,
        pool_type: PoolType = PoolType.NODE,
        policies: list[dict[str, Any]] | None = None,
    ) -> NodePoolConfig:
        """
        Resolve names and policies for a pool.

        A pool without explicit policies gets the default policy for its type.
        """
        if policies:
            specs = tuple(PolicySpec.from_dict(p) for p in policies)
        else:
            master = pool_type is PoolType.MASTER
            document = DEFAULT_MASTER_POLICY if master else DEFAULT_NODE_POLICY
            specs = (PolicySpec(DEFAULT_POLICY_NAMES[pool_type], normalize_document(document)),)
        return cls(
            pool_name=pool_name,
            profile_name=profile_name(cluster_name, pool_name),
            role_name=role_name(cluster_name, pool_name),
            policies=specs,
        )
