"""Diff engine for instance profile reconciliation.

Compares an actual snapshot (read from IAM) against an expected snapshot
(computed from configuration). Provider-assigned identifiers are ignored,
since an expected snapshot never has one. Policies are compared
element-wise in their existing order, so the same policies listed in a
different order count as a difference.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import InstanceProfile, Role, Shared

_ABSENT_ROLE = Role(shared=Shared())


@dataclass(frozen=True)
class Change:
    """A single field that differs between actual and expected."""

    path: str  # e.g. "role.policies[0].document"
    actual: Any
    expected: Any


def _diff_shared(prefix: str, actual: Shared, expected: Shared) -> list[Change]:
    changes: list[Change] = []
    if actual.name != expected.name:
        changes.append(Change(f"{prefix}name", actual.name, expected.name))
    if dict(actual.tags) != dict(expected.tags):
        changes.append(Change(f"{prefix}tags", dict(actual.tags), dict(expected.tags)))
    return changes


def compute_diff(actual: InstanceProfile, expected: InstanceProfile) -> list[Change]:
    """
    Compute the field-level differences between two snapshots.

    An absent role and a role with no name and no policies are treated the
    same way, as are unset and empty policy collections.

    Args:
        actual: Snapshot observed from the cloud provider.
        expected: Snapshot computed from the desired configuration.

    Returns:
        List of Change objects, empty when the snapshots are equal.
    """
    changes = _diff_shared("", actual.shared, expected.shared)
    if actual.server_pool != expected.server_pool:
        changes.append(Change("server_pool", actual.server_pool, expected.server_pool))

    actual_role = actual.role or _ABSENT_ROLE
    expected_role = expected.role or _ABSENT_ROLE
    changes.extend(_diff_shared("role.", actual_role.shared, expected_role.shared))

    actual_policies = actual_role.policies or ()
    expected_policies = expected_role.policies or ()
    for i in range(max(len(actual_policies), len(expected_policies))):
        path = f"role.policies[{i}]"
        if i >= len(actual_policies):
            changes.append(Change(path, None, expected_policies[i].name))
            continue
        if i >= len(expected_policies):
            changes.append(Change(path, actual_policies[i].name, None))
            continue
        a, e = actual_policies[i], expected_policies[i]
        changes.extend(_diff_shared(f"{path}.", a.shared, e.shared))
        if a.document != e.document:
            changes.append(Change(f"{path}.document", a.document, e.document))

    return changes


def is_equal(actual: InstanceProfile, expected: InstanceProfile) -> bool:
    """True when the snapshots match, ignoring identifiers."""
    return not compute_diff(actual, expected)
