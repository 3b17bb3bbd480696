"""Exceptions raised by the Shield automation modules."""
from __future__ import annotations

from botocore.exceptions import ClientError

HEALTH_CHECK_LIMIT_CODES = frozenset({"TooManyHealthChecks"})
ALARM_LIMIT_CODES = frozenset({"LimitExceeded", "LimitExceededFault"})


class ShieldAutomationError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(ShieldAutomationError):
    """Raised when environment configuration cannot be parsed."""


class CrossAccountAccessError(ShieldAutomationError):
    """Raised when credentials for a member account cannot be obtained."""

    def __init__(self, account_id: str, message: str):
        super().__init__(f"Unable to assume role in account {account_id}: {message}")
        self.account_id = account_id


class ProtectionLookupError(ShieldAutomationError):
    """Raised when Shield does not return a usable protection record."""


class HealthCheckCreationError(ShieldAutomationError):
    """Raised when Route 53 accepts a request but returns no health check id."""


def error_code(exc: BaseException) -> str | None:
    """Return the AWS error code carried by a botocore ClientError."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None
