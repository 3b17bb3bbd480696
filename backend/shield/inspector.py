"""Compliance decisions for classified Shield protections."""
from __future__ import annotations

import logging

from .types import ComplianceVerdict, ProtectedResource, ShieldResource, ValidatorResponse

LOGGER = logging.getLogger(__name__)

UNSUPPORTED_TYPES = frozenset({ShieldResource.UNKNOWN, ShieldResource.INCOMPLETE_ELASTIC_IP})


def is_valid(resource: ProtectedResource) -> ValidatorResponse:
    """A protection is valid when it protects an ELB, EIP or CloudFront distribution."""
    response = ValidatorResponse(
        is_valid=resource.resource_type not in UNSUPPORTED_TYPES,
        is_incomplete_eip=resource.resource_type is ShieldResource.INCOMPLETE_ELASTIC_IP,
    )
    LOGGER.info(
        "Validated shield protection %s type=%s valid=%s",
        resource.protection_id,
        resource.resource_type.value,
        response.is_valid,
    )
    return response


def is_compliant(resource: ProtectedResource) -> bool:
    """A protection is compliant when at least one health check is associated."""
    health_check_ids = resource.health_check_ids
    LOGGER.info(
        "Retrieved compliance information for shield protection %s numHealthChecks=%s",
        resource.protection_id,
        len(health_check_ids) if health_check_ids is not None else None,
    )
    return health_check_ids is not None and len(health_check_ids) > 0


def decide_verdict(validation: ValidatorResponse, compliant: bool) -> ComplianceVerdict:
    if validation.is_incomplete_eip:
        # non-compliant until the EIP is attached to an instance or NLB
        return ComplianceVerdict.NON_COMPLIANT
    if not validation.is_valid:
        return ComplianceVerdict.NOT_APPLICABLE
    return ComplianceVerdict.COMPLIANT if compliant else ComplianceVerdict.NON_COMPLIANT
