"""Exceptions for profile-reconciler."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class ReconcilerError(Exception):
    """
    Base exception for all profile-reconciler errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class CloudError(ReconcilerError):
    """
    Base exception for classified cloud provider errors.

    The IAM adapter translates every provider failure into exactly one of
    the four subclasses below. The reconciliation engine only ever inspects
    these kinds, never provider-specific error codes.

    Attributes:
        operation: Adapter operation that failed (e.g. ``create_role``)
        target: Name of the entity the operation addressed
    """

    def __init__(self, operation: str, target: str, message: str | None = None) -> None:
        self.operation = operation
        self.target = target
        text = f"{operation} {target} failed"
        if message:
            text += f": {message}"
        super().__init__(text)


class ValidationError(ReconcilerError):
    """
    Raised when user-supplied input is invalid.

    Attributes:
        field: Name of the field that failed validation
        value: The rejected value
        reason: Human-readable explanation
    """

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class ConfigurationError(ReconcilerError):
    """Raised when settings or defaults cannot be resolved."""

    pass


# ---------------------------------------------------------------------------
# Cloud Exceptions
# ---------------------------------------------------------------------------


class NotFoundError(CloudError):
    """Raised when the addressed entity does not exist."""

    pass


class AlreadyExistsError(CloudError):
    """Raised when creating an entity that already exists."""

    pass


class LimitExceededError(CloudError):
    """Raised when the provider rejects a call because of a quota."""

    pass


class ProviderError(CloudError):
    """
    Raised for any provider failure that is not one of the known kinds.

    Always fatal to the reconciliation phase that hit it. The original
    provider exception is chained as ``__cause__`` and its error code, when
    one exists, is kept in ``code``.
    """

    def __init__(
        self,
        operation: str,
        target: str,
        message: str | None = None,
        code: str | None = None,
    ) -> None:
        self.code = code
        super().__init__(operation, target, message)


# ---------------------------------------------------------------------------
# Controller Exceptions
# ---------------------------------------------------------------------------


class ConvergenceError(ReconcilerError):
    """
    Raised when the control loop gives up before actual equals expected.

    Attributes:
        resource_name: Name of the resource that did not converge
        attempts: Number of Actual/Apply cycles that were run
    """

    def __init__(self, resource_name: str, attempts: int) -> None:
        self.resource_name = resource_name
        self.attempts = attempts
        super().__init__(f"Resource {resource_name} did not converge after {attempts} attempt(s)")
