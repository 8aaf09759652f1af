"""Reconcilable resources."""

from .base import Reconciled, Resource, UnmatchedServerPoolWarning, render_instance_profile
from .instance_profile import TRUST_DOCUMENT, InstanceProfileResource

__all__ = [
    "TRUST_DOCUMENT",
    "InstanceProfileResource",
    "Reconciled",
    "Resource",
    "UnmatchedServerPoolWarning",
    "render_instance_profile",
]
