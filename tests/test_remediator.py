"""Health check provisioning, rollback and service limit handling."""
from __future__ import annotations

import string

import pytest

pytest.importorskip("botocore")
from botocore.exceptions import ClientError

from backend.config_remediate import remediator as remediator_module
from backend.config_remediate.remediator import ShieldRemediator
from backend.shield.alarm_config import build_alarm_configs
from backend.shield.errors import HealthCheckCreationError
from backend.shield.notifier import CLOUDWATCH_ALARM_LIMIT_REASON, HEALTH_CHECK_LIMIT_REASON
from backend.shield.types import ProtectedResource, ShieldResource


ACCOUNT_ID = "123456789012"
REGION = "us-east-1"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeCloudWatch:
    def __init__(self, fail_on=None, error=None):  # type: ignore[no-untyped-def]
        self.fail_on = fail_on
        self.error = error
        self.alarms = []
        self.deleted = []

    def put_metric_alarm(self, **kwargs):  # type: ignore[no-untyped-def]
        if self.fail_on == len(self.alarms) + 1:
            raise self.error
        self.alarms.append(kwargs)
        return {}

    def delete_alarms(self, AlarmNames):  # type: ignore[no-untyped-def]
        self.deleted.append(list(AlarmNames))
        return {}


class FakeRoute53:
    def __init__(self, fail_on=None, error=None, missing_id=False):  # type: ignore[no-untyped-def]
        self.fail_on = fail_on
        self.error = error
        self.missing_id = missing_id
        self.created = []
        self.deleted = []

    def create_health_check(self, CallerReference, HealthCheckConfig):  # type: ignore[no-untyped-def]
        if self.fail_on == len(self.created) + 1:
            raise self.error
        self.created.append(HealthCheckConfig)
        if self.missing_id:
            return {"HealthCheck": {}}
        return {"HealthCheck": {"Id": f"hc-{len(self.created)}"}}

    def delete_health_check(self, HealthCheckId):  # type: ignore[no-untyped-def]
        self.deleted.append(HealthCheckId)
        return {}


class FakeShieldHandler:
    def __init__(self, error=None):  # type: ignore[no-untyped-def]
        self.error = error
        self.associations = []

    def associate_health_check(self, protection_id, health_check_id):  # type: ignore[no-untyped-def]
        if self.error is not None:
            raise self.error
        self.associations.append((protection_id, health_check_id))


class FakeNotifier:
    def __init__(self):
        self.errors = []

    def publish_remediation_error(self, account_id, protection_id, reason):  # type: ignore[no-untyped-def]
        self.errors.append((account_id, protection_id, reason))


def _resource(resource_type=ShieldResource.APPLICATION_LOAD_BALANCER) -> ProtectedResource:  # type: ignore[no-untyped-def]
    return ProtectedResource(
        protection_id="prot-1",
        resource_arn=f"arn:aws:elasticloadbalancing:{REGION}:{ACCOUNT_ID}:loadbalancer/app/my-alb/1",
        resource_type=resource_type,
        resource_id="my-alb",
    )


def _remediator(*, cloudwatch=None, route53=None, shield=None, notifier=None, resource=None, sleeps=None):  # type: ignore[no-untyped-def]
    resource = resource or _resource()
    suffixes = iter(f"suffix{n}" for n in range(100))
    return ShieldRemediator(
        shield or FakeShieldHandler(),
        resource,
        region=REGION,
        account_id=ACCOUNT_ID,
        cloudwatch_client=cloudwatch or FakeCloudWatch(),
        route53_client=route53 or FakeRoute53(),
        notifier=notifier or FakeNotifier(),
        alarm_configs=build_alarm_configs({})[resource.resource_type],
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
        suffix_factory=lambda: next(suffixes),
    )


def test_successful_remediation_associates_calculated_check():
    cloudwatch, route53, shield, sleeps = FakeCloudWatch(), FakeRoute53(), FakeShieldHandler(), []

    health_check_id = _remediator(cloudwatch=cloudwatch, route53=route53, shield=shield, sleeps=sleeps).execute_remediation()

    assert health_check_id == "hc-3"
    assert [alarm["MetricName"] for alarm in cloudwatch.alarms] == ["HTTPCode_ELB_4XX_Count", "HTTPCode_ELB_5XX_Count"]
    first_alarm = cloudwatch.alarms[0]
    assert first_alarm["AlarmName"].startswith("FMS-Shield-prot-1-")
    assert first_alarm["Namespace"] == "AWS/ApplicationELB"
    assert first_alarm["Dimensions"] == [{"Name": "LoadBalancer", "Value": "my-alb"}]
    assert first_alarm["EvaluationPeriods"] == 20
    assert first_alarm["Period"] == 60
    assert route53.created[0] == {
        "Type": "CLOUDWATCH_METRIC",
        "AlarmIdentifier": {"Region": REGION, "Name": first_alarm["AlarmName"]},
    }
    assert route53.created[2] == {
        "Type": "CALCULATED",
        "HealthThreshold": 1,
        "ChildHealthChecks": ["hc-1", "hc-2"],
    }
    assert shield.associations == [("prot-1", "hc-3")]
    assert sleeps == [2.0, 2.0]
    assert route53.deleted == []
    assert cloudwatch.deleted == []


def test_failure_on_second_alarm_rolls_back_created_artifacts():
    cloudwatch = FakeCloudWatch(fail_on=2, error=_client_error("InternalServiceError", "PutMetricAlarm"))
    route53, shield, notifier = FakeRoute53(), FakeShieldHandler(), FakeNotifier()

    with pytest.raises(ClientError):
        _remediator(cloudwatch=cloudwatch, route53=route53, shield=shield, notifier=notifier).execute_remediation()

    assert route53.deleted == ["hc-1"]
    assert cloudwatch.deleted == [[cloudwatch.alarms[0]["AlarmName"]]]
    assert shield.associations == []
    assert notifier.errors == []


def test_health_check_limit_notifies_and_returns_none():
    route53 = FakeRoute53(fail_on=2, error=_client_error("TooManyHealthChecks", "CreateHealthCheck"))
    cloudwatch, notifier = FakeCloudWatch(), FakeNotifier()

    result = _remediator(cloudwatch=cloudwatch, route53=route53, notifier=notifier).execute_remediation()

    assert result is None
    assert notifier.errors == [(ACCOUNT_ID, "prot-1", HEALTH_CHECK_LIMIT_REASON)]
    assert route53.deleted == ["hc-1"]
    assert cloudwatch.deleted == [[alarm["AlarmName"] for alarm in cloudwatch.alarms]]
    assert len(cloudwatch.deleted[0]) == 2


def test_alarm_limit_notifies_without_cleanup_calls():
    cloudwatch = FakeCloudWatch(fail_on=1, error=_client_error("LimitExceeded", "PutMetricAlarm"))
    route53, notifier = FakeRoute53(), FakeNotifier()

    result = _remediator(cloudwatch=cloudwatch, route53=route53, notifier=notifier).execute_remediation()

    assert result is None
    assert notifier.errors == [(ACCOUNT_ID, "prot-1", CLOUDWATCH_ALARM_LIMIT_REASON)]
    assert route53.created == []
    assert route53.deleted == []
    assert cloudwatch.deleted == []


def test_association_failure_deletes_every_artifact():
    shield = FakeShieldHandler(error=_client_error("InvalidResourceException", "AssociateHealthCheck"))
    cloudwatch, route53 = FakeCloudWatch(), FakeRoute53()

    with pytest.raises(ClientError):
        _remediator(cloudwatch=cloudwatch, route53=route53, shield=shield).execute_remediation()

    assert route53.deleted == ["hc-1", "hc-2", "hc-3"]
    assert len(cloudwatch.deleted) == 1
    assert len(cloudwatch.deleted[0]) == 2


def test_missing_health_check_id_raises_after_cleanup():
    cloudwatch, route53 = FakeCloudWatch(), FakeRoute53(missing_id=True)

    with pytest.raises(HealthCheckCreationError):
        _remediator(cloudwatch=cloudwatch, route53=route53).execute_remediation()

    assert route53.deleted == []
    assert cloudwatch.deleted == [[cloudwatch.alarms[0]["AlarmName"]]]


@pytest.mark.parametrize("resource_type", [ShieldResource.INCOMPLETE_ELASTIC_IP, ShieldResource.UNKNOWN])
def test_unremediable_types_make_no_calls(resource_type):
    cloudwatch, route53 = FakeCloudWatch(), FakeRoute53()

    result = _remediator(cloudwatch=cloudwatch, route53=route53, resource=_resource(resource_type)).execute_remediation()

    assert result is None
    assert cloudwatch.alarms == []
    assert route53.created == []


def test_random_suffix_is_letters_only():
    suffix = remediator_module.random_suffix()

    assert len(suffix) == 32
    assert set(suffix) <= set(string.ascii_letters)
