"""Resolve the resource type protected by a Shield Protection from its ARN.

Classification never raises: malformed ARNs, unsupported services and lookup
failures all resolve to ``ShieldResource.UNKNOWN``.

Network Load Balancers cannot be the direct target of a Shield Protection.
They are protected through an Elastic IP, so an ``eip-allocation`` ARN is
followed to its network interface to find the load balancer behind it.
"""
from __future__ import annotations

import logging
import re
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .types import ResourceClassification, ShieldResource

LOGGER = logging.getLogger(__name__)

ARN_MIN_FIELDS = 6
NLB_INTERFACE_TYPE = "network_load_balancer"

_ALB_PATTERN = re.compile(r"loadbalancer/app/", re.IGNORECASE)
_ELB_PATTERN = re.compile(r"loadbalancer/", re.IGNORECASE)
_EIP_PATTERN = re.compile(r"eip-allocation/", re.IGNORECASE)
_DISTRIBUTION_PATTERN = re.compile(r"distribution/", re.IGNORECASE)
# Interface descriptions of NLB-owned ENIs look like "ELB net/<name>/<id>".
_NLB_DESCRIPTION_PATTERN = re.compile(r"^[^/]*/([^/]+)/")


class EipResolver(Protocol):
    def resolve(self, allocation_id: str) -> ResourceClassification:
        ...


def classify(resource_arn: str, eip_resolver: EipResolver | None = None) -> ResourceClassification:
    """Return the protected resource type and its short identifier."""
    arn_parts = (resource_arn or "").split(":")
    if len(arn_parts) < ARN_MIN_FIELDS:
        LOGGER.error("Invalid ARN format: %s", resource_arn)
        return ResourceClassification.unknown()

    resource_details = arn_parts[5]
    segments = resource_details.split("/")
    try:
        if _ALB_PATTERN.search(resource_details):
            return _classified(ShieldResource.APPLICATION_LOAD_BALANCER, segments[2])
        if _ELB_PATTERN.search(resource_details):
            return _classified(ShieldResource.CLASSIC_LOAD_BALANCER, segments[1])
        if _EIP_PATTERN.search(resource_details):
            allocation_id = segments[1]
            if eip_resolver is None:
                LOGGER.warning("No Elastic IP resolver configured; cannot classify %s", resource_arn)
                return ResourceClassification.unknown()
            return eip_resolver.resolve(allocation_id)
        if _DISTRIBUTION_PATTERN.search(resource_details):
            return _classified(ShieldResource.CLOUDFRONT_DISTRIBUTION, segments[1])
    except Exception:
        LOGGER.exception("Encountered error while retrieving protected resource type for %s", resource_arn)
        return ResourceClassification.unknown()

    LOGGER.info("Resource %s protected by Shield is not currently supported for remediation", resource_arn)
    return ResourceClassification.unknown()


def _classified(resource_type: ShieldResource, resource_id: str) -> ResourceClassification:
    if not resource_id:
        raise ValueError(f"empty resource id for {resource_type.value}")
    return ResourceClassification(resource_type=resource_type, resource_id=resource_id)


class ElasticIPResolver:
    """Follows an Elastic IP allocation to the instance or NLB it is attached to."""

    def __init__(self, ec2_client):  # type: ignore[no-untyped-def]
        self._ec2 = ec2_client

    def resolve(self, allocation_id: str) -> ResourceClassification:
        try:
            response = self._ec2.describe_addresses(AllocationIds=[allocation_id])
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Failed to describe Elastic IP %s: %s", allocation_id, exc)
            return ResourceClassification.unknown()

        addresses = response.get("Addresses") or []
        if not addresses:
            LOGGER.debug("EIP %s from Shield Protection could not be found", allocation_id)
            return ResourceClassification.unknown()

        address = addresses[0]
        instance_id = address.get("InstanceId")
        if instance_id:
            LOGGER.debug("Found EIP %s attached to EC2 instance %s", allocation_id, instance_id)
            return ResourceClassification(resource_type=ShieldResource.ELASTIC_IP, resource_id=instance_id)

        interface_id = address.get("NetworkInterfaceId")
        if interface_id:
            LOGGER.debug("Found EIP %s attached to network interface %s", allocation_id, interface_id)
            return self._resolve_interface(interface_id, allocation_id)

        return _incomplete(allocation_id)

    def _resolve_interface(self, interface_id: str, allocation_id: str) -> ResourceClassification:
        try:
            response = self._ec2.describe_network_interfaces(NetworkInterfaceIds=[interface_id])
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Failed to describe network interface %s: %s", interface_id, exc)
            return ResourceClassification.unknown()

        interfaces = response.get("NetworkInterfaces") or []
        if len(interfaces) != 1:
            return _incomplete(allocation_id)
        interface = interfaces[0]
        if interface.get("InterfaceType") != NLB_INTERFACE_TYPE:
            return _incomplete(allocation_id)

        nlb_name = nlb_name_from_description(interface.get("Description"))
        if not nlb_name:
            LOGGER.warning(
                "Could not parse description of network interface %s. Description must be of the form "
                "*/load-balancer-name/* for automatic remediation of Network Load Balancers.",
                interface_id,
            )
            return _incomplete(allocation_id)
        LOGGER.debug("Found Network Load Balancer %s attached to EIP %s", nlb_name, allocation_id)
        return ResourceClassification(resource_type=ShieldResource.NETWORK_LOAD_BALANCER, resource_id=nlb_name)


def nlb_name_from_description(description: str | None) -> str | None:
    if not description:
        return None
    match = _NLB_DESCRIPTION_PATTERN.match(description)
    return match.group(1) if match else None


def _incomplete(allocation_id: str) -> ResourceClassification:
    return ResourceClassification(resource_type=ShieldResource.INCOMPLETE_ELASTIC_IP, resource_id=allocation_id)
