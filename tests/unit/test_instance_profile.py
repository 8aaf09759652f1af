"""Tests for the instance profile composite resource."""

from urllib.parse import quote

import pytest

from profile_reconciler.defaults import NodePoolConfig, PolicySpec
from profile_reconciler.exceptions import (
    AlreadyExistsError,
    LimitExceededError,
    NotFoundError,
    ProviderError,
)
from profile_reconciler.resources import (
    TRUST_DOCUMENT,
    InstanceProfileResource,
    UnmatchedServerPoolWarning,
)
from tests.fixtures.iam import NODE_DOCUMENT

CLUSTER_TAGS = {"Name": "demo-profile", "KubernetesCluster": "demo-cluster"}


def _apply_once(resource, cluster, iam):
    """Run one Actual -> Expected -> Apply cycle."""
    _, actual = resource.actual(cluster, iam)
    _, expected = resource.expected(cluster)
    return resource.apply(actual, expected, cluster, iam)


class TestExpected:
    """Tests for the pure expected-state projection."""

    def test_builds_full_graph(self, resource, cluster, fake_iam):
        """Expected carries profile, role and policies with traceability tags."""
        _, expected = resource.expected(cluster)

        assert expected.name == "demo-profile"
        assert expected.identifier == ""
        assert expected.shared.tags == CLUSTER_TAGS
        assert expected.server_pool == "demo"
        assert expected.role.name == "demo-role"
        assert [p.name for p in expected.role.policies] == ["node-policy"]
        assert expected.role.policies[0].document == NODE_DOCUMENT
        assert expected.role.policies[0].shared.tags == CLUSTER_TAGS
        assert fake_iam.calls == []

    def test_is_deterministic(self, resource, cluster):
        """Identical inputs produce identical snapshots and clusters."""
        first = resource.expected(cluster)
        second = resource.expected(cluster)
        assert first == second

    def test_renders_without_mutating_input(self, resource, cluster):
        """The input cluster is untouched; the returned one references the profile."""
        new_cluster, expected = resource.expected(cluster)

        assert cluster.find_server_pool("demo").instance_profile is None
        assert new_cluster.find_server_pool("demo").instance_profile == expected
        # Untouched pools are shared, not copied
        assert new_cluster.find_server_pool("master") is cluster.find_server_pool("master")


class TestActual:
    """Tests for reading state from IAM."""

    def test_missing_profile_is_absent_not_error(self, resource, cluster, fake_iam):
        """A profile that does not exist yields an absent snapshot."""
        new_cluster, actual = resource.actual(cluster, fake_iam)

        assert not actual.exists
        assert actual.name == "demo-profile"
        assert actual.role is None
        assert new_cluster.find_server_pool("demo").instance_profile is None
        assert fake_iam.mutating_calls() == []

    def test_reads_role_and_policies(self, resource, cluster, fake_iam):
        """Existing profile is read with its role and every inline policy."""
        _apply_once(resource, cluster, fake_iam)
        fake_iam.reset_calls()

        _, actual = resource.actual(cluster, fake_iam)

        assert actual.exists
        assert actual.role.name == "demo-role"
        assert actual.role.shared.identifier != ""
        assert [(p.name, p.document) for p in actual.role.policies] == [
            ("node-policy", NODE_DOCUMENT)
        ]
        assert fake_iam.operations() == [
            "get_profile",
            "get_role",
            "list_policy_names",
            "get_policy_document",
        ]
        assert fake_iam.mutating_calls() == []

    def test_decodes_url_escaped_documents(self, resource, cluster, fake_iam):
        """URL-escaped policy payloads are decoded."""
        fake_iam.create_profile("demo-profile")
        fake_iam.create_role("demo-role", TRUST_DOCUMENT)
        fake_iam.attach_role_to_profile("demo-profile", "demo-role")
        fake_iam.put_role_policy("demo-role", "node-policy", quote(NODE_DOCUMENT))

        _, actual = resource.actual(cluster, fake_iam)

        assert actual.role.policies[0].document == NODE_DOCUMENT

    def test_provider_error_propagates(self, resource, cluster, fake_iam):
        """Errors other than not-found abort the read."""
        fake_iam.fail(
            "get_profile", ProviderError("get_profile", "demo-profile", code="Throttling")
        )

        with pytest.raises(ProviderError) as exc_info:
            resource.actual(cluster, fake_iam)
        assert exc_info.value.code == "Throttling"


class TestApply:
    """Tests for converging IAM toward the expected state."""

    def test_cold_start_creates_in_order(self, resource, cluster, fake_iam):
        """Absent actual: create profile, create role, write policy, attach role."""
        _, actual = resource.actual(cluster, fake_iam)
        _, expected = resource.expected(cluster)
        fake_iam.reset_calls()

        new_cluster, applied = resource.apply(actual, expected, cluster, fake_iam)

        assert fake_iam.calls == [
            ("create_profile", "demo-profile"),
            ("create_role", "demo-role", TRUST_DOCUMENT),
            ("put_role_policy", "demo-role", "node-policy", NODE_DOCUMENT),
            ("attach_role_to_profile", "demo-profile", "demo-role"),
        ]
        pool = new_cluster.find_server_pool("demo")
        assert pool.instance_profile.name == "demo-profile"
        assert pool.instance_profile == applied
        assert applied.exists

    def test_trust_document_literal(self):
        """Trust document matches the literal used by existing clusters."""
        assert TRUST_DOCUMENT == (
            '{"Version":"2012-10-17","Statement":[{"Effect":"Allow",'
            '"Principal":{"Service":"ec2.amazonaws.com"},"Action":"sts:AssumeRole"}]}'
        )

    def test_second_apply_is_noop(self, resource, cluster, fake_iam):
        """Applying twice yields the same cluster and no cloud calls the second time."""
        first_cluster, _ = _apply_once(resource, cluster, fake_iam)

        _, actual = resource.actual(first_cluster, fake_iam)
        _, expected = resource.expected(first_cluster)
        fake_iam.reset_calls()
        second_cluster, _ = resource.apply(actual, expected, first_cluster, fake_iam)

        assert fake_iam.calls == []
        assert second_cluster == first_cluster

    def test_actual_matches_expected_after_apply(self, resource, cluster, fake_iam):
        """After a successful apply the observed state equals the expected state."""
        new_cluster, _ = _apply_once(resource, cluster, fake_iam)

        _, actual = resource.actual(new_cluster, fake_iam)
        _, expected = resource.expected(new_cluster)

        assert resource.is_equal(actual, expected)

    def test_tolerates_already_exists(self, resource, cluster, fake_iam):
        """Existing profile and role do not stop the remaining steps."""
        fake_iam.create_profile("demo-profile")
        fake_iam.create_role("demo-role", TRUST_DOCUMENT)
        _, actual = resource.actual(cluster, fake_iam)
        _, expected = resource.expected(cluster)
        fake_iam.reset_calls()

        new_cluster, applied = resource.apply(actual, expected, cluster, fake_iam)

        assert fake_iam.operations() == [
            "create_profile",
            "get_profile",
            "create_role",
            "get_role",
            "put_role_policy",
            "attach_role_to_profile",
        ]
        assert applied.identifier == fake_iam.profiles["demo-profile"].identifier
        assert fake_iam.profiles["demo-profile"].roles == ["demo-role"]

    def test_already_exists_but_not_yet_readable(self, resource, cluster, fake_iam):
        """Existing entities that reads cannot see yet still let apply finish."""
        _, actual = resource.actual(cluster, fake_iam)
        _, expected = resource.expected(cluster)
        fake_iam.create_profile("demo-profile")
        fake_iam.create_role("demo-role", TRUST_DOCUMENT)
        fake_iam.fail("create_profile", AlreadyExistsError("create_profile", "demo-profile"))
        fake_iam.fail("get_profile", NotFoundError("get_profile", "demo-profile"))
        fake_iam.fail("create_role", AlreadyExistsError("create_role", "demo-role"))
        fake_iam.fail("get_role", NotFoundError("get_role", "demo-role"))
        fake_iam.reset_calls()

        new_cluster, applied = resource.apply(actual, expected, cluster, fake_iam)

        assert fake_iam.operations() == [
            "create_profile",
            "get_profile",
            "create_role",
            "get_role",
            "put_role_policy",
            "attach_role_to_profile",
        ]
        assert fake_iam.roles["demo-role"].policies == {"node-policy": NODE_DOCUMENT}
        assert fake_iam.profiles["demo-profile"].roles == ["demo-role"]
        assert applied.name == "demo-profile"
        assert applied.identifier == ""
        assert applied.role.name == "demo-role"
        assert new_cluster.find_server_pool("demo").instance_profile == applied

    def test_tolerates_limit_exceeded_on_policy_write(self, resource, cluster, fake_iam):
        """A quota error while writing a policy is tolerated and attach still runs."""
        fake_iam.fail("put_role_policy", LimitExceededError("put_role_policy", "demo-role"))

        _apply_once(resource, cluster, fake_iam)

        assert "attach_role_to_profile" in fake_iam.operations()

    def test_tolerates_limit_exceeded_on_attach(self, resource, cluster, fake_iam):
        """A profile that already holds the role does not fail the apply."""
        fake_iam.create_profile("demo-profile")
        fake_iam.create_role("demo-role", TRUST_DOCUMENT)
        fake_iam.attach_role_to_profile("demo-profile", "demo-role")

        _apply_once(resource, cluster, fake_iam)

        assert fake_iam.profiles["demo-profile"].roles == ["demo-role"]
        assert fake_iam.roles["demo-role"].policies == {"node-policy": NODE_DOCUMENT}

    def test_other_errors_abort_and_rerun_recovers(self, resource, cluster, fake_iam):
        """A fatal error stops the sequence; re-running finishes the job."""
        fake_iam.fail("create_role", ProviderError("create_role", "demo-role", code="AccessDenied"))

        with pytest.raises(ProviderError):
            _apply_once(resource, cluster, fake_iam)
        assert fake_iam.operations()[-1] == "create_role"
        assert "demo-profile" in fake_iam.profiles
        assert "demo-role" not in fake_iam.roles

        fake_iam.failures.clear()
        new_cluster, applied = _apply_once(resource, cluster, fake_iam)

        assert applied.role.name == "demo-role"
        assert new_cluster.find_server_pool("demo").instance_profile.name == "demo-profile"

    def test_removes_policies_no_longer_expected(self, resource, cluster, fake_iam):
        """Inline policies absent from the expected state are deleted."""
        _apply_once(resource, cluster, fake_iam)
        fake_iam.put_role_policy("demo-role", "old-policy", NODE_DOCUMENT)
        fake_iam.reset_calls()

        _apply_once(resource, cluster, fake_iam)

        assert ("delete_role_policy", "demo-role", "old-policy") in fake_iam.calls
        assert list(fake_iam.roles["demo-role"].policies) == ["node-policy"]

    def test_unmatched_server_pool_is_skipped_with_warning(self, cluster, fake_iam):
        """Rendering for a pool the cluster lacks changes nothing and does not raise."""
        orphan = InstanceProfileResource(
            NodePoolConfig(
                pool_name="missing",
                profile_name="orphan-profile",
                role_name="orphan-role",
                policies=(PolicySpec("node-policy", NODE_DOCUMENT),),
            )
        )

        with pytest.warns(UnmatchedServerPoolWarning):
            new_cluster, applied = _apply_once(orphan, cluster, fake_iam)

        assert new_cluster is cluster
        assert all(pool.instance_profile is None for pool in new_cluster.server_pools)
        assert applied.exists


class TestDelete:
    """Tests for reverse-order teardown."""

    def test_deletes_in_reverse_order(self, resource, cluster, fake_iam):
        """Policies, role attachment, role, then profile."""
        new_cluster, _ = _apply_once(resource, cluster, fake_iam)
        _, actual = resource.actual(new_cluster, fake_iam)
        fake_iam.reset_calls()

        final_cluster, deleted = resource.delete(actual, new_cluster, fake_iam)

        assert fake_iam.calls == [
            ("delete_role_policy", "demo-role", "node-policy"),
            ("detach_role_from_profile", "demo-profile", "demo-role"),
            ("delete_role", "demo-role"),
            ("delete_profile", "demo-profile"),
        ]
        assert not deleted.exists
        assert final_cluster.find_server_pool("demo").instance_profile is None
        assert fake_iam.profiles == {}
        assert fake_iam.roles == {}

    def test_actual_is_absent_after_delete(self, resource, cluster, fake_iam):
        """Actual reports an absent resource once deleted."""
        new_cluster, _ = _apply_once(resource, cluster, fake_iam)
        _, actual = resource.actual(new_cluster, fake_iam)
        resource.delete(actual, new_cluster, fake_iam)

        _, after = resource.actual(new_cluster, fake_iam)

        assert not after.exists
        assert after.role is None

    def test_delete_of_absent_resource_succeeds(self, resource, cluster, fake_iam):
        """Deleting twice is safe: every step hits not-found and is tolerated."""
        _, actual = resource.actual(cluster, fake_iam)
        fake_iam.reset_calls()

        new_cluster, deleted = resource.delete(actual, cluster, fake_iam)

        assert fake_iam.operations() == [
            "delete_role_policy",
            "detach_role_from_profile",
            "delete_role",
            "delete_profile",
        ]
        assert not deleted.exists
        assert new_cluster.find_server_pool("demo").instance_profile is None

    def test_delete_propagates_fatal_errors(self, resource, cluster, fake_iam):
        """Errors other than not-found abort the teardown."""
        _apply_once(resource, cluster, fake_iam)
        _, actual = resource.actual(cluster, fake_iam)
        fake_iam.fail(
            "delete_role", ProviderError("delete_role", "demo-role", code="DeleteConflict")
        )

        with pytest.raises(ProviderError):
            resource.delete(actual, cluster, fake_iam)
        assert "demo-profile" in fake_iam.profiles

