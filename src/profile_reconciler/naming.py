"""Resource naming utilities.

IAM entity names double as their cloud-level identifiers, so every name this
tool creates embeds the cluster name to avoid collisions between clusters
that share an account. Cluster and pool names must satisfy:

- Alphanumeric characters and hyphens only
- Must start with a letter
- Maximum 40 characters, so ``<cluster>-<pool>-profile`` stays within the
  64 character IAM limit for the common case
"""

import re

from .exceptions import ValidationError

NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")

MAX_NAME_LENGTH = 40
"""Upper bound for cluster and server pool names."""

IAM_NAME_LIMIT = 64
"""AWS limit for role and instance profile names."""

PROFILE_SUFFIX = "profile"
ROLE_SUFFIX = "role"


def validate_name(name: str, field: str = "name") -> None:
    """
    Validate a cluster or server pool name.

    Args:
        name: The user-provided identifier
        field: Field label used in the error message

    Raises:
        ValidationError: If the name contains invalid characters
    """
    if not name:
        raise ValidationError(field, name, "Name cannot be empty")

    if "_" in name:
        raise ValidationError(
            field,
            name,
            "Contains underscore. Use hyphens instead (e.g., 'node-pool' not 'node_pool')",
        )
    if " " in name:
        raise ValidationError(
            field,
            name,
            "Contains spaces. Use hyphens instead (e.g., 'my-cluster' not 'my cluster')",
        )

    if not NAME_PATTERN.match(name):
        raise ValidationError(
            field,
            name,
            "Must start with a letter and contain only alphanumeric characters and hyphens.",
        )

    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            field,
            name,
            f"Too long. Name exceeds {MAX_NAME_LENGTH} character limit.",
        )


def _join(cluster_name: str, pool_name: str, suffix: str) -> str:
    name = f"{cluster_name}-{pool_name}-{suffix}"
    if len(name) > IAM_NAME_LIMIT:
        raise ValidationError(
            "name",
            name,
            f"Derived IAM name exceeds {IAM_NAME_LIMIT} characters. Shorten cluster or pool name.",
        )
    return name


def profile_name(cluster_name: str, pool_name: str) -> str:
    """Instance profile name for a server pool (e.g. ``demo-nodes-profile``)."""
    return _join(cluster_name, pool_name, PROFILE_SUFFIX)


def role_name(cluster_name: str, pool_name: str) -> str:
    """IAM role name for a server pool (e.g. ``demo-nodes-role``)."""
    return _join(cluster_name, pool_name, ROLE_SUFFIX)


def cluster_tags(resource_name: str, cluster_name: str) -> dict[str, str]:
    """
    Traceability tags carried by every created or queried resource.

    Garbage collection and auditing rely on these to associate orphaned
    cloud objects back to their cluster.
    """
    return {
        "Name": resource_name,
        "KubernetesCluster": cluster_name,
    }
