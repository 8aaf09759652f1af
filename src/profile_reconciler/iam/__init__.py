"""IAM adapter boundary."""

from .aws import Boto3IAMAdapter, classify_client_error
from .protocol import DEFAULT_PATH, IAMAdapter, ProfileRecord, RoleRecord

__all__ = [
    "DEFAULT_PATH",
    "Boto3IAMAdapter",
    "IAMAdapter",
    "ProfileRecord",
    "RoleRecord",
    "classify_client_error",
]
