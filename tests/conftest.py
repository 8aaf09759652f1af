"""Pytest fixtures for profile-reconciler tests."""

import boto3
import pytest
from moto import mock_aws

from profile_reconciler.defaults import NodePoolConfig, PolicySpec
from profile_reconciler.models import Cluster, ServerPool
from profile_reconciler.resources import InstanceProfileResource
from tests.fixtures.iam import NODE_DOCUMENT, RecordingIAM


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_iam(aws_credentials):
    """Mock IAM for tests."""
    with mock_aws():
        yield


@pytest.fixture
def iam_client(mock_iam):
    """boto3 IAM client backed by moto."""
    return boto3.client("iam", region_name="us-east-1")


@pytest.fixture
def fake_iam() -> RecordingIAM:
    """In-memory IAM adapter that records calls."""
    return RecordingIAM()


@pytest.fixture
def cluster() -> Cluster:
    """Cluster with a master pool and the ``demo`` node pool."""
    return Cluster(
        name="demo-cluster",
        server_pools=(
            ServerPool(name="master"),
            ServerPool(name="demo"),
        ),
    )


@pytest.fixture
def demo_config() -> NodePoolConfig:
    """Desired state: profile ``demo-profile``, role ``demo-role``, one policy."""
    return NodePoolConfig(
        pool_name="demo",
        profile_name="demo-profile",
        role_name="demo-role",
        policies=(PolicySpec("node-policy", NODE_DOCUMENT),),
    )


@pytest.fixture
def resource(demo_config) -> InstanceProfileResource:
    """Instance profile resource for the ``demo`` pool."""
    return InstanceProfileResource(demo_config)
