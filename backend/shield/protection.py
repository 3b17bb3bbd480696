"""Access to Shield Protections and the resources they protect in a member account."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import boto3

from . import classifier
from .errors import ProtectionLookupError
from .types import ProtectedResource, ResourceClassification

LOGGER = logging.getLogger(__name__)


class ShieldHandler:
    """Wraps the Shield and EC2 clients of a member account session."""

    def __init__(self, shield_client, ec2_client, *, partition: str = "aws"):  # type: ignore[no-untyped-def]
        self._shield = shield_client
        self._ec2 = ec2_client
        self._partition = partition

    @classmethod
    def from_session(cls, session: boto3.Session, *, region: str, partition: str = "aws") -> ShieldHandler:
        return cls(
            session.client("shield", region_name=region),
            session.client("ec2", region_name=region),
            partition=partition,
        )

    def describe_protection(self, protection_id: str) -> Mapping[str, Any]:
        """Call Shield DescribeProtection and return the Protection record."""
        response = self._shield.describe_protection(ProtectionId=protection_id)
        protection = response.get("Protection") or {}
        if not protection.get("Id"):
            LOGGER.error("Could not describe shield protection %s", protection_id)
            raise ProtectionLookupError(f"Shield DescribeProtection returned no protection for {protection_id}")
        LOGGER.debug("Described shield protection %s", protection["Id"])
        return protection

    def get_protection(self, protection_id: str) -> ProtectedResource:
        """Describe the protection and classify the resource it protects."""
        protection = self.describe_protection(protection_id)
        resource_arn = protection.get("ResourceArn")
        if not resource_arn:
            LOGGER.debug("Shield protection %s has no protected resource ARN", protection_id)
            raise ProtectionLookupError(f"Shield protection {protection_id} has no ResourceArn")
        classification = self.classify(resource_arn)
        return ProtectedResource(
            protection_id=protection["Id"],
            resource_arn=resource_arn,
            resource_type=classification.resource_type,
            resource_id=classification.resource_id,
            health_check_ids=protection.get("HealthCheckIds"),
        )

    def classify(self, resource_arn: str) -> ResourceClassification:
        return classifier.classify(resource_arn, classifier.ElasticIPResolver(self._ec2))

    def health_check_arn(self, health_check_id: str) -> str:
        return f"arn:{self._partition}:route53:::healthcheck/{health_check_id}"

    def associate_health_check(self, protection_id: str, health_check_id: str) -> None:
        """Associate a Route 53 health check with the Shield Protection."""
        self._shield.associate_health_check(
            ProtectionId=protection_id,
            HealthCheckArn=self.health_check_arn(health_check_id),
        )
        LOGGER.info("Associated calculated health check %s with shield protection %s", health_check_id, protection_id)
