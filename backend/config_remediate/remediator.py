"""Provision CloudWatch alarms and Route 53 health checks for a non-compliant Shield Protection."""
from __future__ import annotations

import logging
import secrets
import string
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..shield import metrics
from ..shield.alarm_config import AlarmMetricConfig
from ..shield.errors import ALARM_LIMIT_CODES, HEALTH_CHECK_LIMIT_CODES, HealthCheckCreationError, error_code
from ..shield.notifier import CLOUDWATCH_ALARM_LIMIT_REASON, HEALTH_CHECK_LIMIT_REASON, Notifier
from ..shield.protection import ShieldHandler
from ..shield.types import ProtectedResource, ProvisionedArtifacts, ShieldResource

LOGGER = logging.getLogger(__name__)

ALARM_NAME_PREFIX = "FMS-Shield"
UNIQUE_SUFFIX_LENGTH = 32
ALARM_PERIOD_SECONDS = 60

CLOUDWATCH_METRIC = "CLOUDWATCH_METRIC"
CALCULATED = "CALCULATED"


def random_suffix(length: int = UNIQUE_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(string.ascii_letters) for _ in range(length))


def limit_reason(exc: BaseException) -> str | None:
    """Return the notification reason when ``exc`` is a service quota error."""
    code = error_code(exc)
    if code in HEALTH_CHECK_LIMIT_CODES:
        return HEALTH_CHECK_LIMIT_REASON
    if code in ALARM_LIMIT_CODES:
        return CLOUDWATCH_ALARM_LIMIT_REASON
    return None


class ShieldRemediator:
    """Creates the health checks a Shield Protection needs for health-based detection.

    For each alarm definition of the resource type an alarm and a
    CLOUDWATCH_METRIC health check are created, then a CALCULATED health check
    over all of them is associated with the protection. Every artifact created
    during a failed attempt is deleted before the attempt ends.
    """

    def __init__(
        self,
        shield_handler: ShieldHandler,
        resource: ProtectedResource,
        *,
        region: str,
        account_id: str,
        cloudwatch_client,  # type: ignore[no-untyped-def]
        route53_client,  # type: ignore[no-untyped-def]
        notifier: Notifier,
        alarm_configs: Sequence[AlarmMetricConfig],
        step_delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        suffix_factory: Callable[[], str] = random_suffix,
    ):
        self._shield_handler = shield_handler
        self._resource = resource
        self._region = region
        self._account_id = account_id
        self._cloudwatch = cloudwatch_client
        self._route53 = route53_client
        self._notifier = notifier
        self._alarm_configs = tuple(alarm_configs)
        self._step_delay = step_delay_seconds
        self._sleep = sleep
        self._suffix_factory = suffix_factory

    @property
    def protection_id(self) -> str:
        return self._resource.protection_id

    def execute_remediation(self) -> str | None:
        """Remediate the protection, returning the associated calculated health check id.

        Returns None when the resource type is not remediable or a service
        limit stopped the attempt. Any other failure is re-raised after cleanup.
        """
        resource_type = self._resource.resource_type
        if resource_type is ShieldResource.INCOMPLETE_ELASTIC_IP:
            LOGGER.debug(
                "The Elastic IP protected by Shield Protection %s must be attached to an Instance or "
                "Network Load Balancer for health check creation.",
                self.protection_id,
            )
            return None
        if resource_type is ShieldResource.UNKNOWN or not self._alarm_configs:
            LOGGER.debug(
                "The resource type protected by Shield Protection %s is not supported for health check creation.",
                self.protection_id,
            )
            return None

        start = time.perf_counter()
        try:
            health_check_id = self.remediate_by_resource_type()
        except (ClientError, BotoCoreError, HealthCheckCreationError) as exc:
            if limit_reason(exc) is None:
                self._record("error", start)
                raise
            # limit reached; the operator has been notified
            self._record("limit-reached", start)
            return None
        self._record("remediated", start)
        return health_check_id

    def remediate_by_resource_type(self) -> str:
        with self._provisioning() as artifacts:
            for alarm_config in self._alarm_configs:
                alarm_name = self.create_cloudwatch_alarm(alarm_config)
                artifacts.alarms.append(alarm_name)

                health_check_id = self.create_health_check(CLOUDWATCH_METRIC, alarm_name=alarm_name)
                artifacts.health_checks.append(health_check_id)

                self._sleep(self._step_delay)  # Route 53 API rate limit

            children = list(artifacts.health_checks)
            calculated_id = self.create_health_check(CALCULATED, child_health_checks=children)
            artifacts.health_checks.append(calculated_id)

            self._shield_handler.associate_health_check(self.protection_id, calculated_id)
            return calculated_id

    @contextmanager
    def _provisioning(self) -> Iterator[ProvisionedArtifacts]:
        artifacts = ProvisionedArtifacts()
        try:
            yield artifacts
        except BaseException as exc:
            reason = limit_reason(exc)
            if reason is not None:
                self._notifier.publish_remediation_error(self._account_id, self.protection_id, reason)
            LOGGER.error(
                "Error occurred during remediation of resource %s (protection %s): %s",
                self._resource.resource_id,
                self.protection_id,
                exc,
            )
            self.cleanup(artifacts)
            raise

    def cleanup(self, artifacts: ProvisionedArtifacts) -> None:
        """Delete every alarm and health check recorded in ``artifacts``."""
        if artifacts.health_checks:
            self.delete_health_checks(artifacts.health_checks)
        if artifacts.alarms:
            self.delete_cloudwatch_alarms(artifacts.alarms)

    def create_cloudwatch_alarm(self, alarm_config: AlarmMetricConfig) -> str:
        alarm_name = f"{ALARM_NAME_PREFIX}-{self.protection_id}-{self._suffix_factory()}"
        self._cloudwatch.put_metric_alarm(
            AlarmName=alarm_name,
            AlarmDescription=(
                f"Alarm for Health Check associated with Shield Protection {self.protection_id} "
                f"with Metric {alarm_config.metric}"
            ),
            ActionsEnabled=False,
            ComparisonOperator="GreaterThanOrEqualToThreshold",
            DatapointsToAlarm=1,
            TreatMissingData="notBreaching",
            Statistic=alarm_config.statistic,
            EvaluationPeriods=alarm_config.evaluation_periods,
            Period=ALARM_PERIOD_SECONDS,
            Threshold=alarm_config.threshold,
            Namespace=alarm_config.namespace,
            MetricName=alarm_config.metric,
            Dimensions=[{"Name": alarm_config.dimension_name, "Value": self._resource.resource_id}],
        )
        LOGGER.info("Created CloudWatch alarm %s", alarm_name)
        return alarm_name

    def create_health_check(
        self,
        health_check_type: str,
        *,
        alarm_name: str | None = None,
        child_health_checks: Sequence[str] = (),
    ) -> str:
        """Create a Route 53 health check and return its id."""
        caller_reference = self._suffix_factory()
        config: dict[str, object] = {"Type": health_check_type}
        if health_check_type == CLOUDWATCH_METRIC:
            config["AlarmIdentifier"] = {"Region": self._region, "Name": alarm_name}
        elif health_check_type == CALCULATED:
            config["HealthThreshold"] = len(child_health_checks) - 1
            config["ChildHealthChecks"] = list(child_health_checks)

        LOGGER.debug("Creating health check type %s config=%s region=%s", health_check_type, config, self._region)
        response = self._route53.create_health_check(CallerReference=caller_reference, HealthCheckConfig=config)
        health_check_id = (response.get("HealthCheck") or {}).get("Id")
        if not health_check_id:
            LOGGER.error("Health check id is undefined in CreateHealthCheck response callerReference=%s", caller_reference)
            raise HealthCheckCreationError("Health Check ID is undefined for created Health Check")
        LOGGER.info("Created Route 53 health check %s", health_check_id)
        return health_check_id

    def delete_health_checks(self, health_check_ids: Sequence[str]) -> None:
        for health_check_id in health_check_ids:
            LOGGER.info("Deleting created Route 53 health check %s", health_check_id)
            try:
                self._route53.delete_health_check(HealthCheckId=health_check_id)
            except (ClientError, BotoCoreError) as exc:
                LOGGER.error("Failed to delete health check %s: %s", health_check_id, exc)

    def delete_cloudwatch_alarms(self, alarm_names: Sequence[str]) -> None:
        LOGGER.info("Deleting created CloudWatch alarms %s", list(alarm_names))
        try:
            self._cloudwatch.delete_alarms(AlarmNames=list(alarm_names))
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Failed to delete CloudWatch alarms %s: %s", list(alarm_names), exc)

    def _record(self, result: str, start: float) -> None:
        metrics.put_metric(
            component="ConfigRemediate",
            action="remediate",
            result=result,
            latency_ms=(time.perf_counter() - start) * 1000,
            protection_id=self.protection_id,
            resource_type=self._resource.resource_type.value,
        )
