"""Runtime settings.

Each setting resolves from the explicit argument, then its environment
variable, then the built-in default.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

REGION_ENV_VAR = "PROFILE_RECONCILER_REGION"
ENDPOINT_URL_ENV_VAR = "PROFILE_RECONCILER_ENDPOINT_URL"
LOG_LEVEL_ENV_VAR = "PROFILE_RECONCILER_LOG_LEVEL"
MAX_ATTEMPTS_ENV_VAR = "PROFILE_RECONCILER_MAX_ATTEMPTS"

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_MAX_ATTEMPTS = 3

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """
    Resolved runtime settings.

    Attributes:
        region: AWS region (``None`` uses boto3 defaults)
        endpoint_url: Optional endpoint URL (LocalStack or other IAM-compatible services)
        log_level: Root logging level name
        max_attempts: Apply cycles the control loop runs before giving up
    """

    region: str | None = None
    endpoint_url: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(
                f"Unknown log level {self.log_level!r}; expected one of {', '.join(_LOG_LEVELS)}"
            )
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")

    @classmethod
    def resolve(
        cls,
        region: str | None = None,
        endpoint_url: str | None = None,
        log_level: str | None = None,
        max_attempts: int | None = None,
    ) -> Settings:
        """Build settings from explicit values, environment, then defaults."""
        if max_attempts is None:
            raw = os.environ.get(MAX_ATTEMPTS_ENV_VAR)
            try:
                max_attempts = int(raw) if raw else DEFAULT_MAX_ATTEMPTS
            except ValueError as e:
                raise ConfigurationError(
                    f"{MAX_ATTEMPTS_ENV_VAR} must be an integer, got {raw!r}"
                ) from e

        return cls(
            region=region or os.environ.get(REGION_ENV_VAR),
            endpoint_url=endpoint_url or os.environ.get(ENDPOINT_URL_ENV_VAR),
            log_level=(log_level or os.environ.get(LOG_LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL).upper(),
            max_attempts=max_attempts,
        )


def setup_logging(settings: Settings) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
