"""Caller-side control loop.

Resources never retry. This module re-runs Actual -> Diff -> Apply until a
resource converges (level-triggered), and threads a single Cluster value
through every resource in order so the merge of results has one writer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from .config import DEFAULT_MAX_ATTEMPTS
from .exceptions import ConvergenceError
from .iam import IAMAdapter
from .models import Cluster, InstanceProfile
from .resources import InstanceProfileResource, Reconciled, Resource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReconcileResult:
    """Outcome of reconciling a set of resources."""

    cluster: Cluster
    applied: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def converge(
    resource: Resource[T],
    cluster: Cluster,
    iam: IAMAdapter,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> tuple[Reconciled[T], int]:
    """
    Drive one resource until actual equals expected.

    Args:
        resource: The resource to reconcile
        cluster: Current cluster value
        iam: IAM adapter used for every cloud call
        max_attempts: Apply cycles to run before giving up

    Returns:
        The converged ``Reconciled`` pair (actual snapshot rendered into the
        cluster) and the number of Apply calls that mutated the cloud.

    Raises:
        ConvergenceError: If the resource still differs after ``max_attempts``
    """
    applies = 0
    while True:
        observed_cluster, actual = resource.actual(cluster, iam)
        _, expected = resource.expected(cluster)
        if resource.is_equal(actual, expected):
            logger.debug("%s converged after %d apply call(s)", resource.name, applies)
            return Reconciled(observed_cluster, actual), applies
        if applies >= max_attempts:
            raise ConvergenceError(resource.name, applies)
        applies += 1
        logger.info("Applying %s (attempt %d/%d)", resource.name, applies, max_attempts)
        cluster, _ = resource.apply(actual, expected, cluster, iam)


def reconcile_cluster(
    cluster: Cluster,
    resources: Sequence[Resource[T]],
    iam: IAMAdapter,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> ReconcileResult:
    """Converge every resource, threading the cluster value through in order."""
    result = ReconcileResult(cluster=cluster)
    for resource in resources:
        (result.cluster, _), applies = converge(resource, result.cluster, iam, max_attempts)
        if applies:
            result.applied.append(resource.name)
        else:
            result.unchanged.append(resource.name)
    return result


def teardown_cluster(
    cluster: Cluster,
    resources: Sequence[Resource[T]],
    iam: IAMAdapter,
) -> ReconcileResult:
    """Delete every resource, last first, threading the cluster value through."""
    result = ReconcileResult(cluster=cluster)
    for resource in reversed(resources):
        observed_cluster, actual = resource.actual(result.cluster, iam)
        result.cluster, _ = resource.delete(actual, observed_cluster, iam)
        result.deleted.append(resource.name)
    return result


def observe(
    cluster: Cluster,
    resources: Sequence[InstanceProfileResource],
    iam: IAMAdapter,
) -> tuple[Cluster, list[InstanceProfile]]:
    """Read the actual state of every resource into one cluster value."""
    snapshots = []
    for resource in resources:
        cluster, snapshot = resource.actual(cluster, iam)
        snapshots.append(snapshot)
    return cluster, snapshots
