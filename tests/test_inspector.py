"""Validity and compliance decisions for classified protections."""
from __future__ import annotations

import pytest

from backend.shield import inspector
from backend.shield.types import ComplianceVerdict, ProtectedResource, ShieldResource


def _resource(resource_type: ShieldResource, health_checks=None) -> ProtectedResource:  # type: ignore[no-untyped-def]
    return ProtectedResource(
        protection_id="prot-1",
        resource_arn="arn:aws:ec2:us-east-1:123456789012:eip-allocation/eipalloc-1",
        resource_type=resource_type,
        resource_id="res-1",
        health_check_ids=health_checks,
    )


@pytest.mark.parametrize(
    "resource_type",
    [
        ShieldResource.APPLICATION_LOAD_BALANCER,
        ShieldResource.CLASSIC_LOAD_BALANCER,
        ShieldResource.NETWORK_LOAD_BALANCER,
        ShieldResource.ELASTIC_IP,
        ShieldResource.CLOUDFRONT_DISTRIBUTION,
    ],
)
def test_supported_types_are_valid(resource_type):
    response = inspector.is_valid(_resource(resource_type))

    assert response.is_valid
    assert not response.is_incomplete_eip


def test_incomplete_eip_flagged():
    response = inspector.is_valid(_resource(ShieldResource.INCOMPLETE_ELASTIC_IP))

    assert not response.is_valid
    assert response.is_incomplete_eip


def test_unknown_is_invalid():
    response = inspector.is_valid(_resource(ShieldResource.UNKNOWN))

    assert not response.is_valid
    assert not response.is_incomplete_eip


@pytest.mark.parametrize("health_checks,expected", [(None, False), ([], False), (["hc-1"], True)])
def test_compliance_requires_a_health_check(health_checks, expected):
    assert inspector.is_compliant(_resource(ShieldResource.ELASTIC_IP, health_checks)) is expected


def test_verdicts():
    valid = inspector.is_valid(_resource(ShieldResource.ELASTIC_IP))
    incomplete = inspector.is_valid(_resource(ShieldResource.INCOMPLETE_ELASTIC_IP))
    unknown = inspector.is_valid(_resource(ShieldResource.UNKNOWN))

    assert inspector.decide_verdict(valid, True) is ComplianceVerdict.COMPLIANT
    assert inspector.decide_verdict(valid, False) is ComplianceVerdict.NON_COMPLIANT
    assert inspector.decide_verdict(incomplete, False) is ComplianceVerdict.NON_COMPLIANT
    assert inspector.decide_verdict(unknown, False) is ComplianceVerdict.NOT_APPLICABLE
