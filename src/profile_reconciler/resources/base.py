"""Resource reconciliation contract.

Every resource kind implements four operations. Each takes the current
immutable ``Cluster`` and returns a ``Reconciled`` pair: a new Cluster and
the resource's own snapshot. Failures raise (see ``exceptions``).

- ``expected(cluster)``: pure, no cloud calls, deterministic.
- ``actual(cluster, iam)``: cloud reads only; absence is a valid result.
- ``apply(actual, expected, cluster, iam)``: no-op when the diff is empty,
  otherwise an ordered, idempotent create sequence.
- ``delete(actual, cluster, iam)``: reverse-order teardown, safe to repeat.

There is no retry inside a resource. Callers re-run the whole cycle until
actual equals expected (see ``controller``).
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Generic, NamedTuple, Protocol, TypeVar

if TYPE_CHECKING:
    from ..iam import IAMAdapter
    from ..models import Cluster, InstanceProfile

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnmatchedServerPoolWarning(UserWarning):
    """Emitted when a resource is rendered for a server pool the cluster lacks."""


class Reconciled(NamedTuple, Generic[T]):
    """Result of a reconciliation phase."""

    cluster: Cluster
    resource: T


class Resource(Protocol[T]):
    """Contract implemented by every reconcilable resource kind."""

    @property
    def name(self) -> str: ...

    def expected(self, cluster: Cluster) -> Reconciled[T]: ...

    def actual(self, cluster: Cluster, iam: IAMAdapter) -> Reconciled[T]: ...

    def apply(self, actual: T, expected: T, cluster: Cluster, iam: IAMAdapter) -> Reconciled[T]: ...

    def delete(self, actual: T, cluster: Cluster, iam: IAMAdapter) -> Reconciled[T]: ...

    def is_equal(self, actual: T, expected: T) -> bool: ...


def render_instance_profile(
    cluster: Cluster,
    pool_name: str | None,
    profile: InstanceProfile | None,
) -> Cluster:
    """
    Attach ``profile`` to the server pool named ``pool_name``.

    Returns a new Cluster (or the same one when nothing changed). When no
    pool matches, the cluster is returned untouched and an
    ``UnmatchedServerPoolWarning`` is emitted.
    """
    if pool_name is None or cluster.find_server_pool(pool_name) is None:
        logger.warning(
            "No server pool %r in cluster %s; profile not rendered", pool_name, cluster.name
        )
        warnings.warn(
            f"No server pool {pool_name!r} in cluster {cluster.name!r}",
            UnmatchedServerPoolWarning,
            stacklevel=3,
        )
        return cluster
    return cluster.with_instance_profile(pool_name, profile)
