"""IAM adapter protocol.

The reconciliation engine talks to the identity provider only through this
protocol. Implementations must raise the classified exceptions from
``profile_reconciler.exceptions`` (``NotFoundError``, ``AlreadyExistsError``,
``LimitExceededError``, ``ProviderError``) and nothing provider-specific.

The protocol uses ``typing.Protocol`` with ``@runtime_checkable``, so test
doubles need no inheritance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

DEFAULT_PATH = "/"


@dataclass(frozen=True)
class ProfileRecord:
    """An instance profile as reported by the provider."""

    name: str
    identifier: str
    role_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoleRecord:
    """A role as reported by the provider."""

    name: str
    identifier: str


@runtime_checkable
class IAMAdapter(Protocol):
    """
    Protocol for identity-and-access-management backends.

    Reads:
        get_profile, get_role, list_policy_names, get_policy_document

    Writes:
        create_profile, create_role, put_role_policy, attach_role_to_profile,
        delete_role_policy, detach_role_from_profile, delete_role,
        delete_profile
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_profile(self, name: str) -> ProfileRecord:
        """
        Read an instance profile by name.

        Raises:
            NotFoundError: If no such profile exists
        """
        ...

    def get_role(self, role_name: str) -> RoleRecord:
        """Read a role by name."""
        ...

    def list_policy_names(self, role_name: str) -> list[str]:
        """List the inline policy names of a role, in provider order."""
        ...

    def get_policy_document(self, role_name: str, policy_name: str) -> str:
        """
        Read an inline policy document.

        The document is returned as the provider delivers it and may still
        be URL-escaped.
        """
        ...

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_profile(
        self,
        name: str,
        path: str = DEFAULT_PATH,
        tags: dict[str, str] | None = None,
    ) -> ProfileRecord:
        """Create an instance profile."""
        ...

    def create_role(
        self,
        name: str,
        trust_document: str,
        path: str = DEFAULT_PATH,
        description: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> RoleRecord:
        """Create a role assumable according to ``trust_document``."""
        ...

    def put_role_policy(self, role_name: str, policy_name: str, document: str) -> None:
        """Write or overwrite an inline policy on a role."""
        ...

    def attach_role_to_profile(self, profile_name: str, role_name: str) -> None:
        """Add a role to an instance profile."""
        ...

    def delete_role_policy(self, role_name: str, policy_name: str) -> None:
        """Delete an inline policy from a role."""
        ...

    def detach_role_from_profile(self, profile_name: str, role_name: str) -> None:
        """Remove a role from an instance profile."""
        ...

    def delete_role(self, role_name: str) -> None:
        """Delete a role (its policies must already be gone)."""
        ...

    def delete_profile(self, profile_name: str) -> None:
        """Delete an instance profile (its role must already be detached)."""
        ...
