"""
profile-reconciler: converge IAM instance profiles for Kubernetes server pools.

Each server pool that needs cloud credentials gets an instance profile, a
role assumable by EC2 and the role's inline policies. Reconciliation follows
a four-phase contract (Expected, Actual, Diff, Apply, plus Delete) over an
immutable ``Cluster`` value that every phase replaces rather than mutates.

Example:
    from profile_reconciler import Boto3IAMAdapter, ClusterManifest, reconcile_cluster

    manifest = ClusterManifest.from_yaml(open("cluster.yaml").read())
    result = reconcile_cluster(
        manifest.build_cluster(),
        manifest.resources(),
        Boto3IAMAdapter(region="eu-west-1"),
    )
    profile = result.cluster.find_server_pool("nodes").instance_profile
"""

from .controller import ReconcileResult, converge, observe, reconcile_cluster, teardown_cluster
from .defaults import NodePoolConfig, PolicySpec, ProfileDefaults
from .differ import Change, compute_diff, is_equal
from .exceptions import (
    AlreadyExistsError,
    CloudError,
    ConfigurationError,
    ConvergenceError,
    LimitExceededError,
    NotFoundError,
    ProviderError,
    ReconcilerError,
    ValidationError,
)
from .iam import Boto3IAMAdapter, IAMAdapter
from .manifest import ClusterManifest
from .models import Cluster, InstanceProfile, Policy, PoolType, Role, ServerPool, Shared
from .resources import (
    TRUST_DOCUMENT,
    InstanceProfileResource,
    Reconciled,
    Resource,
    UnmatchedServerPoolWarning,
)

__version__ = "0.1.0"

__all__ = [
    "TRUST_DOCUMENT",
    "AlreadyExistsError",
    "Boto3IAMAdapter",
    "Change",
    "CloudError",
    "Cluster",
    "ClusterManifest",
    "ConfigurationError",
    "ConvergenceError",
    "IAMAdapter",
    "InstanceProfile",
    "InstanceProfileResource",
    "LimitExceededError",
    "NodePoolConfig",
    "NotFoundError",
    "Policy",
    "PolicySpec",
    "PoolType",
    "ProfileDefaults",
    "ProviderError",
    "ReconcileResult",
    "Reconciled",
    "ReconcilerError",
    "Resource",
    "Role",
    "ServerPool",
    "Shared",
    "UnmatchedServerPoolWarning",
    "ValidationError",
    "__version__",
    "compute_diff",
    "converge",
    "is_equal",
    "observe",
    "reconcile_cluster",
    "teardown_cluster",
]
