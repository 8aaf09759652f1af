"""Instance profile composite resource: profile -> role -> inline policies."""

from __future__ import annotations

import json
import logging
from urllib.parse import unquote

from ..defaults import NodePoolConfig
from ..differ import compute_diff
from ..exceptions import AlreadyExistsError, LimitExceededError, NotFoundError
from ..iam import DEFAULT_PATH, IAMAdapter, ProfileRecord, RoleRecord
from ..models import Cluster, InstanceProfile, Policy, Role, Shared, normalize_document
from ..naming import cluster_tags
from .base import Reconciled, render_instance_profile

logger = logging.getLogger(__name__)

COMPUTE_SERVICE_PRINCIPAL = "ec2.amazonaws.com"

# Must match byte for byte: clusters provisioned earlier carry this document.
TRUST_DOCUMENT = (
    '{"Version":"2012-10-17","Statement":[{"Effect":"Allow",'
    '"Principal":{"Service":"' + COMPUTE_SERVICE_PRINCIPAL + '"},'
    '"Action":"sts:AssumeRole"}]}'
)

ROLE_DESCRIPTION = "Kubernetes node role"


def decode_document(raw: str) -> str:
    """Decode a policy document that may still be URL-escaped."""
    try:
        json.loads(raw)
    except ValueError:
        raw = unquote(raw)
    return normalize_document(raw)


def _existing_profile(iam: IAMAdapter, name: str) -> ProfileRecord:
    # IAM reads lag writes: a profile reported as existing may not be readable yet
    try:
        return iam.get_profile(name)
    except NotFoundError:
        logger.debug("Instance profile %s not readable yet", name)
        return ProfileRecord(name=name, identifier="")


def _existing_role(iam: IAMAdapter, name: str) -> RoleRecord:
    try:
        return iam.get_role(name)
    except NotFoundError:
        logger.debug("Role %s not readable yet", name)
        return RoleRecord(name=name, identifier="")


class InstanceProfileResource:
    """
    Reconciles the instance profile of a single server pool.

    The resource holds only the resolved desired configuration. Cluster
    state comes in through each call and goes out as a new value.
    """

    def __init__(self, config: NodePoolConfig) -> None:
        self.config = config

    def __repr__(self) -> str:
        return f"InstanceProfileResource({self.config.profile_name!r})"

    @property
    def name(self) -> str:
        return self.config.profile_name

    @property
    def server_pool(self) -> str:
        return self.config.pool_name

    def _absent(self, cluster: Cluster) -> InstanceProfile:
        return InstanceProfile(
            shared=Shared(name=self.name, tags=cluster_tags(self.name, cluster.name)),
            server_pool=self.server_pool,
        )

    def is_equal(self, actual: InstanceProfile, expected: InstanceProfile) -> bool:
        return not compute_diff(actual, expected)

    # -------------------------------------------------------------------------
    # Expected
    # -------------------------------------------------------------------------

    def expected(self, cluster: Cluster) -> Reconciled[InstanceProfile]:
        """Project the resolved configuration into a full resource graph."""
        logger.debug("instance_profile.expected %s", self.name)
        tags = cluster_tags(self.name, cluster.name)
        policies = tuple(
            Policy(shared=Shared(name=spec.name, tags=tags), document=spec.document)
            for spec in self.config.policies
        )
        resource = InstanceProfile(
            shared=Shared(name=self.name, tags=tags),
            role=Role(shared=Shared(name=self.config.role_name, tags=tags), policies=policies),
            server_pool=self.server_pool,
        )
        return Reconciled(render_instance_profile(cluster, self.server_pool, resource), resource)

    # -------------------------------------------------------------------------
    # Actual
    # -------------------------------------------------------------------------

    def actual(self, cluster: Cluster, iam: IAMAdapter) -> Reconciled[InstanceProfile]:
        """
        Read the profile, its role and the role's inline policies.

        A missing profile yields an absent snapshot (empty identifier), not
        an error. Any other provider error propagates.
        """
        logger.debug("instance_profile.actual %s", self.name)
        tags = cluster_tags(self.name, cluster.name)
        try:
            record = iam.get_profile(self.name)
        except NotFoundError:
            logger.debug("Instance profile %s not found", self.name)
            absent = self._absent(cluster)
            return Reconciled(render_instance_profile(cluster, self.server_pool, None), absent)

        role = None
        if record.role_names:
            if len(record.role_names) > 1:
                logger.warning(
                    "Instance profile %s has %d roles; using %s",
                    self.name,
                    len(record.role_names),
                    record.role_names[0],
                )
            role_record = iam.get_role(record.role_names[0])
            policies = []
            for policy_name in iam.list_policy_names(role_record.name):
                raw = iam.get_policy_document(role_record.name, policy_name)
                policies.append(
                    Policy(
                        shared=Shared(name=policy_name, identifier=policy_name, tags=tags),
                        document=decode_document(raw),
                    )
                )
            role = Role(
                shared=Shared(name=role_record.name, identifier=role_record.identifier, tags=tags),
                policies=tuple(policies),
            )

        resource = InstanceProfile(
            shared=Shared(name=record.name, identifier=record.identifier, tags=tags),
            role=role,
            server_pool=self.server_pool,
        )
        return Reconciled(render_instance_profile(cluster, self.server_pool, resource), resource)

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------

    def apply(
        self,
        actual: InstanceProfile,
        expected: InstanceProfile,
        cluster: Cluster,
        iam: IAMAdapter,
    ) -> Reconciled[InstanceProfile]:
        """
        Converge the cloud toward ``expected``.

        Equal snapshots issue no cloud calls. Otherwise the profile and role
        are created (tolerating "already exists"), every expected policy is
        written, inline policies that are no longer expected are removed, and
        the role is attached to the profile. Any other error aborts, leaving
        whatever the earlier steps created; re-running is safe.
        """
        logger.debug("instance_profile.apply %s", self.name)
        changes = compute_diff(actual, expected)
        if not changes:
            return Reconciled(render_instance_profile(cluster, self.server_pool, actual), actual)
        for change in changes:
            logger.debug("%s: %s %r -> %r", self.name, change.path, change.actual, change.expected)

        tags = cluster_tags(self.name, cluster.name)
        expected_role = expected.role or Role(shared=Shared(name=self.config.role_name))

        try:
            profile_record = iam.create_profile(expected.name, path=DEFAULT_PATH, tags=tags)
            logger.info("Instance profile created: %s", profile_record.name)
        except AlreadyExistsError:
            logger.debug("Instance profile %s already exists", expected.name)
            profile_record = _existing_profile(iam, expected.name)

        try:
            role_record = iam.create_role(
                expected_role.name,
                TRUST_DOCUMENT,
                path=DEFAULT_PATH,
                description=ROLE_DESCRIPTION,
                tags=tags,
            )
            logger.info("Role created: %s", role_record.name)
        except AlreadyExistsError:
            logger.debug("Role %s already exists", expected_role.name)
            role_record = _existing_role(iam, expected_role.name)

        policies = []
        for policy in expected_role.policies:
            try:
                iam.put_role_policy(role_record.name, policy.name, policy.document)
                logger.info("Policy written: %s/%s", role_record.name, policy.name)
            except LimitExceededError as e:
                # TODO: decide whether a quota error here should abort instead
                logger.warning("Tolerating limit exceeded writing policy %s: %s", policy.name, e)
            policies.append(
                Policy(
                    shared=Shared(name=policy.name, identifier=policy.name, tags=tags),
                    document=policy.document,
                )
            )

        if actual.role is not None and actual.role.name == role_record.name:
            wanted = {p.name for p in expected_role.policies}
            for stale in actual.role.policies:
                if stale.name in wanted:
                    continue
                try:
                    iam.delete_role_policy(role_record.name, stale.name)
                    logger.info("Stale policy removed: %s/%s", role_record.name, stale.name)
                except NotFoundError:
                    logger.debug("Stale policy %s already gone", stale.name)

        try:
            iam.attach_role_to_profile(profile_record.name, role_record.name)
            logger.info("Role %s attached to %s", role_record.name, profile_record.name)
        except LimitExceededError as e:
            # IAM reports a profile that already holds a role as a quota error
            logger.warning("Tolerating limit exceeded attaching role %s: %s", role_record.name, e)

        resource = InstanceProfile(
            shared=Shared(
                name=profile_record.name, identifier=profile_record.identifier, tags=tags
            ),
            role=Role(
                shared=Shared(name=role_record.name, identifier=role_record.identifier, tags=tags),
                policies=tuple(policies),
            ),
            server_pool=expected.server_pool,
        )
        rendered = render_instance_profile(cluster, resource.server_pool, resource)
        return Reconciled(rendered, resource)

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete(
        self, actual: InstanceProfile, cluster: Cluster, iam: IAMAdapter
    ) -> Reconciled[InstanceProfile]:
        """
        Tear down policies, role attachment, role and profile, in that order.

        Every step tolerates "not found", so deleting an absent resource
        succeeds. Falls back to the configured names when ``actual`` carries
        no role.
        """
        logger.debug("instance_profile.delete %s", self.name)
        profile = actual.name or self.name
        if actual.role is not None:
            role = actual.role.name
            policy_names = [p.name for p in actual.role.policies]
        else:
            role = self.config.role_name
            policy_names = [p.name for p in self.config.policies]

        for policy_name in policy_names:
            try:
                iam.delete_role_policy(role, policy_name)
            except NotFoundError:
                logger.debug("Policy %s/%s not found", role, policy_name)
        try:
            iam.detach_role_from_profile(profile, role)
        except NotFoundError:
            logger.debug("Role %s not attached to %s", role, profile)
        try:
            iam.delete_role(role)
        except NotFoundError:
            logger.debug("Role %s not found", role)
        try:
            iam.delete_profile(profile)
        except NotFoundError:
            logger.debug("Instance profile %s not found", profile)

        logger.info("Deleted instance profile: %s", profile)
        absent = self._absent(cluster)
        return Reconciled(render_instance_profile(cluster, self.server_pool, None), absent)
