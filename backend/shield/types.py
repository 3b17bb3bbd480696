"""Typed value objects shared across the Shield automation modules."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, MutableMapping, Sequence

from . import metrics


class ShieldResource(str, Enum):
    """AWS resource types a Shield Protection can point at."""

    APPLICATION_LOAD_BALANCER = "ApplicationLoadBalancer"
    CLASSIC_LOAD_BALANCER = "ClassicLoadBalancer"
    NETWORK_LOAD_BALANCER = "NetworkLoadBalancer"
    ELASTIC_IP = "ElasticIP"
    INCOMPLETE_ELASTIC_IP = "IncompleteElasticIP"
    CLOUDFRONT_DISTRIBUTION = "CloudFrontDistribution"
    UNKNOWN = "Unknown"


class ComplianceVerdict(str, Enum):
    """Compliance values accepted by AWS Config PutEvaluations."""

    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    NOT_APPLICABLE = "NOT_APPLICABLE"


@dataclass(slots=True, frozen=True)
class ResourceClassification:
    resource_type: ShieldResource
    resource_id: str

    @classmethod
    def unknown(cls) -> ResourceClassification:
        return cls(resource_type=ShieldResource.UNKNOWN, resource_id="Unknown")


@dataclass(slots=True)
class ProtectedResource:
    """A Shield Protection together with the classified resource it protects."""

    protection_id: str
    resource_arn: str
    resource_type: ShieldResource
    resource_id: str
    health_check_ids: Sequence[str] | None = None


@dataclass(slots=True, frozen=True)
class ValidatorResponse:
    is_valid: bool
    is_incomplete_eip: bool


@dataclass(slots=True, frozen=True)
class RemediationRequest:
    """Message exchanged between the evaluation and remediation Lambdas."""

    account_id: str
    shield_protection_id: str
    result_token: str
    timestamp: str

    @classmethod
    def create(cls, account_id: str, shield_protection_id: str, result_token: str) -> RemediationRequest:
        return cls(
            account_id=account_id,
            shield_protection_id=shield_protection_id,
            result_token=result_token,
            timestamp=metrics.now().isoformat(),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "accountId": self.account_id,
                "shieldProtectionId": self.shield_protection_id,
                "resultToken": self.result_token,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def from_json(cls, body: str) -> RemediationRequest:
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("Remediation request body must be a JSON object")
        missing = [key for key in ("accountId", "shieldProtectionId", "resultToken", "timestamp") if not payload.get(key)]
        if missing:
            raise ValueError(f"Remediation request missing fields: {', '.join(missing)}")
        return cls(
            account_id=str(payload["accountId"]),
            shield_protection_id=str(payload["shieldProtectionId"]),
            result_token=str(payload["resultToken"]),
            timestamp=str(payload["timestamp"]),
        )


@dataclass(slots=True)
class ProvisionedArtifacts:
    """Alarms and health checks created during a single remediation attempt."""

    alarms: list[str] = field(default_factory=list)
    health_checks: list[str] = field(default_factory=list)


Event = MutableMapping[str, Any]
"""Alias for raw AWS event payloads used in Lambda handlers."""
