"""boto3 implementation of the IAM adapter.

Uses boto3 (sync) directly. Every ``ClientError`` is classified by its
error code into one of the four kinds the engine understands; other
botocore failures become ``ProviderError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import (
    AlreadyExistsError,
    CloudError,
    LimitExceededError,
    NotFoundError,
    ProviderError,
)
from .protocol import DEFAULT_PATH, ProfileRecord, RoleRecord

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchEntity", "NoSuchEntityException"})
ALREADY_EXISTS_CODES = frozenset({"EntityAlreadyExists", "EntityAlreadyExistsException"})
LIMIT_EXCEEDED_CODES = frozenset({"LimitExceeded", "LimitExceededException"})


def classify_client_error(error: ClientError, operation: str, target: str) -> CloudError:
    """
    Map a botocore ``ClientError`` to a classified cloud error.

    Args:
        error: The error raised by the boto3 client
        operation: Adapter operation name, for the message
        target: Entity name the call addressed

    Returns:
        NotFoundError, AlreadyExistsError, LimitExceededError or ProviderError
    """
    code = error.response.get("Error", {}).get("Code", "")
    message = error.response.get("Error", {}).get("Message")
    if code in NOT_FOUND_CODES:
        return NotFoundError(operation, target, message)
    if code in ALREADY_EXISTS_CODES:
        return AlreadyExistsError(operation, target, message)
    if code in LIMIT_EXCEEDED_CODES:
        return LimitExceededError(operation, target, message)
    return ProviderError(operation, target, message, code=code or None)


def _tag_list(tags: dict[str, str] | None) -> list[dict[str, str]]:
    return [{"Key": k, "Value": v} for k, v in (tags or {}).items()]


class Boto3IAMAdapter:
    """
    IAM adapter backed by a boto3 client.

    The client is created lazily unless one is injected (tests inject a
    moto-backed or mock client).
    """

    def __init__(
        self,
        client: Any | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> Boto3IAMAdapter:
        """Create an adapter for the region and endpoint in ``settings``."""
        return cls(region=settings.region, endpoint_url=settings.endpoint_url)

    @property
    def client(self) -> Any:
        """Get or create the IAM client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.region:
                kwargs["region_name"] = self.region
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            self._client = boto3.client("iam", **kwargs)
        return self._client

    def _call(self, operation: str, target: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        logger.debug("iam.%s %s", operation, target)
        try:
            return fn(**kwargs)
        except ClientError as e:
            raise classify_client_error(e, operation, target) from e
        except BotoCoreError as e:
            raise ProviderError(operation, target, str(e)) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_profile(self, name: str) -> ProfileRecord:
        response = self._call(
            "get_profile", name, self.client.get_instance_profile, InstanceProfileName=name
        )
        profile = response["InstanceProfile"]
        return ProfileRecord(
            name=profile["InstanceProfileName"],
            identifier=profile["InstanceProfileId"],
            role_names=tuple(role["RoleName"] for role in profile.get("Roles", [])),
        )

    def get_role(self, role_name: str) -> RoleRecord:
        response = self._call("get_role", role_name, self.client.get_role, RoleName=role_name)
        role = response["Role"]
        return RoleRecord(name=role["RoleName"], identifier=role["RoleId"])

    def list_policy_names(self, role_name: str) -> list[str]:
        names: list[str] = []
        kwargs: dict[str, Any] = {"RoleName": role_name}
        while True:
            response = self._call(
                "list_policy_names", role_name, self.client.list_role_policies, **kwargs
            )
            names.extend(response.get("PolicyNames", []))
            if not response.get("IsTruncated"):
                return names
            kwargs["Marker"] = response["Marker"]

    def get_policy_document(self, role_name: str, policy_name: str) -> str:
        response = self._call(
            "get_policy_document",
            f"{role_name}/{policy_name}",
            self.client.get_role_policy,
            RoleName=role_name,
            PolicyName=policy_name,
        )
        document = response["PolicyDocument"]
        # botocore already URL-decodes and parses JSON policy documents
        if isinstance(document, dict):
            return json.dumps(document, separators=(",", ":"))
        return document

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_profile(
        self,
        name: str,
        path: str = DEFAULT_PATH,
        tags: dict[str, str] | None = None,
    ) -> ProfileRecord:
        kwargs: dict[str, Any] = {"InstanceProfileName": name, "Path": path}
        if tags:
            kwargs["Tags"] = _tag_list(tags)
        response = self._call(
            "create_profile", name, self.client.create_instance_profile, **kwargs
        )
        profile = response["InstanceProfile"]
        return ProfileRecord(
            name=profile["InstanceProfileName"],
            identifier=profile["InstanceProfileId"],
        )

    def create_role(
        self,
        name: str,
        trust_document: str,
        path: str = DEFAULT_PATH,
        description: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> RoleRecord:
        kwargs: dict[str, Any] = {
            "RoleName": name,
            "AssumeRolePolicyDocument": trust_document,
            "Path": path,
        }
        if description:
            kwargs["Description"] = description
        if tags:
            kwargs["Tags"] = _tag_list(tags)
        response = self._call("create_role", name, self.client.create_role, **kwargs)
        role = response["Role"]
        return RoleRecord(name=role["RoleName"], identifier=role["RoleId"])

    def put_role_policy(self, role_name: str, policy_name: str, document: str) -> None:
        self._call(
            "put_role_policy",
            f"{role_name}/{policy_name}",
            self.client.put_role_policy,
            RoleName=role_name,
            PolicyName=policy_name,
            PolicyDocument=document,
        )

    def attach_role_to_profile(self, profile_name: str, role_name: str) -> None:
        self._call(
            "attach_role_to_profile",
            f"{profile_name}/{role_name}",
            self.client.add_role_to_instance_profile,
            InstanceProfileName=profile_name,
            RoleName=role_name,
        )

    def delete_role_policy(self, role_name: str, policy_name: str) -> None:
        self._call(
            "delete_role_policy",
            f"{role_name}/{policy_name}",
            self.client.delete_role_policy,
            RoleName=role_name,
            PolicyName=policy_name,
        )

    def detach_role_from_profile(self, profile_name: str, role_name: str) -> None:
        self._call(
            "detach_role_from_profile",
            f"{profile_name}/{role_name}",
            self.client.remove_role_from_instance_profile,
            InstanceProfileName=profile_name,
            RoleName=role_name,
        )

    def delete_role(self, role_name: str) -> None:
        self._call("delete_role", role_name, self.client.delete_role, RoleName=role_name)

    def delete_profile(self, profile_name: str) -> None:
        self._call(
            "delete_profile",
            profile_name,
            self.client.delete_instance_profile,
            InstanceProfileName=profile_name,
        )
