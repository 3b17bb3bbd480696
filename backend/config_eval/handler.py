"""AWS Lambda entrypoint evaluating Shield Protections for the Organization Config rule.

Invoked by AWS Config either on a periodic schedule or for a single changed
protection. Each protection is classified, its compliance written back to
Config, and non-compliant protections are queued for remediation.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Mapping

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..shield import inspector, metrics
from ..shield.credentials import CrossAccountAccessor
from ..shield.errors import CrossAccountAccessError
from ..shield.notifier import INCOMPLETE_EIP_REASON, Notifier
from ..shield.protection import ShieldHandler
from ..shield.settings import Settings, configure_logging
from ..shield.types import ComplianceVerdict, Event
from . import events
from .remediation_queue import RemediationQueueClient

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)

SESSION_NAME = "FMS-Shield-ConfigEvalManager"
SCAN_RESOURCE_TYPE = "AWS::ShieldRegional::Protection"
LEDGER_RESOURCE_TYPE = "AWS::Shield::Protection"
ACCEPTED_PAGE_RESOURCE_TYPES = frozenset({SCAN_RESOURCE_TYPE, LEDGER_RESOURCE_TYPE})
PAGE_SIZE = 25
FRESH_RULE_WINDOW = timedelta(hours=24)
CONFIG_CLIENT_CONFIG = Config(retries={"max_attempts": 5, "mode": "standard"})

HandlerFactory = Callable[[boto3.Session], ShieldHandler]
ConfigClientFactory = Callable[[boto3.Session], Any]


class ConfigEvalManager:
    """Routes Config rule invocations to periodic or single-resource evaluation."""

    def __init__(
        self,
        *,
        accessor: CrossAccountAccessor,
        queue: RemediationQueueClient,
        notifier: Notifier,
        handler_factory: HandlerFactory,
        config_client_factory: ConfigClientFactory,
        clock: Callable[[], datetime] = metrics.now,
    ):
        self._accessor = accessor
        self._queue = queue
        self._notifier = notifier
        self._handler_factory = handler_factory
        self._config_client_factory = config_client_factory
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> ConfigEvalManager:
        return cls(
            accessor=CrossAccountAccessor(
                role_name=settings.cross_account_role,
                session_name=SESSION_NAME,
                partition=settings.partition,
                region=settings.region,
            ),
            queue=RemediationQueueClient(settings.remediation_queue_url, region=settings.region),
            notifier=Notifier(settings.topic_arn, region=settings.region),
            handler_factory=lambda session: ShieldHandler.from_session(
                session, region=settings.region, partition=settings.partition
            ),
            config_client_factory=lambda session: session.client(
                "config", region_name=settings.region, config=CONFIG_CLIENT_CONFIG
            ),
        )

    def handle(self, event: Mapping[str, Any]) -> dict[str, Any]:
        evaluation = events.decode_event(event)
        message_type = evaluation.invoking_event.message_type
        LOGGER.info("Rule evaluation triggered by %s for account %s", message_type, evaluation.account_id)
        summary: dict[str, Any] = {"messageType": message_type, "evaluated": 0, "verdicts": {}}

        if isinstance(evaluation.invoking_event, events.UnsupportedNotification):
            LOGGER.warning("Unsupported Config notification type %s; skipping evaluation", message_type)
            summary["skipped"] = "unsupported-message-type"
            return summary

        try:
            session = self._accessor.assume(evaluation.account_id)
        except CrossAccountAccessError as exc:
            LOGGER.warning(
                "Unable to assume credentials in account %s, please ensure the shield automations "
                "prerequisite stack is deployed in the account: %s",
                evaluation.account_id,
                exc,
            )
            summary["skipped"] = "credentials-unavailable"
            return summary

        shield_handler = self._handler_factory(session)
        config_client = self._config_client_factory(session)

        if isinstance(evaluation.invoking_event, events.ScheduledNotification):
            verdicts = self.handle_scheduled_notification(evaluation, shield_handler, config_client)
        else:
            verdicts = self.handle_evaluation(
                evaluation.invoking_event.configuration_item, evaluation, shield_handler, config_client
            )
        summary["verdicts"] = {resource_id: verdict.value for resource_id, verdict in verdicts.items()}
        summary["evaluated"] = len(verdicts)
        return summary

    def handle_scheduled_notification(
        self,
        evaluation: events.ConfigEvaluationEvent,
        shield_handler: ShieldHandler,
        config_client,  # type: ignore[no-untyped-def]
    ) -> dict[str, ComplianceVerdict]:
        """Re-evaluate every protection Config currently reports as non-compliant."""
        verdicts: dict[str, ComplianceVerdict] = {}
        LOGGER.info(
            "Periodic evaluation of rule %s notified at %s",
            evaluation.rule_name,
            getattr(evaluation.invoking_event, "notification_time", None),
        )
        try:
            if self.should_skip_periodic_eval(evaluation.rule_name, config_client):
                return verdicts
            paginator = config_client.get_paginator("describe_compliance_by_resource")
            pages = paginator.paginate(
                ResourceType=SCAN_RESOURCE_TYPE,
                ComplianceTypes=[ComplianceVerdict.NON_COMPLIANT.value],
                PaginationConfig={"PageSize": PAGE_SIZE},
            )
            for page in pages:
                LOGGER.debug("Compliance paginator page: %s", page)
                entries = page.get("ComplianceByResources") or []
                verdicts.update(self.evaluate_compliance_page(entries, evaluation, shield_handler, config_client))
        except (ClientError, BotoCoreError, RuntimeError) as exc:
            LOGGER.error(
                "Encountered an error evaluating resources from ScheduledNotification event rule=%s account=%s: %s",
                evaluation.rule_name,
                evaluation.account_id,
                exc,
            )
        return verdicts

    def should_skip_periodic_eval(self, rule_name: str, config_client) -> bool:  # type: ignore[no-untyped-def]
        """Skip periodic evaluation while the rule is in its first 24 hours.

        A new rule is evaluated for every existing resource and by the periodic
        trigger at the same time; running both would duplicate remediation.
        """
        response = config_client.describe_config_rule_evaluation_status(ConfigRuleNames=[rule_name])
        statuses = response.get("ConfigRulesEvaluationStatus") or []
        if not statuses:
            LOGGER.error("Could not find status for config rule %s", rule_name)
            raise RuntimeError(f"could not retrieve status from Config for rule {rule_name}")

        first_activated = statuses[0].get("FirstActivatedTime")
        if first_activated and abs(self._clock() - first_activated) < FRESH_RULE_WINDOW:
            LOGGER.info(
                "Rule %s was activated in the past 24 hours. Skipping periodic evaluation to avoid duplicate work.",
                rule_name,
            )
            return True
        return False

    def evaluate_compliance_page(
        self,
        entries,  # type: ignore[no-untyped-def]
        evaluation: events.ConfigEvaluationEvent,
        shield_handler: ShieldHandler,
        config_client,  # type: ignore[no-untyped-def]
    ) -> dict[str, ComplianceVerdict]:
        verdicts: dict[str, ComplianceVerdict] = {}
        for entry in entries:
            resource_type = entry.get("ResourceType")
            compliance_type = (entry.get("Compliance") or {}).get("ComplianceType")
            # the endpoint sometimes returns an incorrect resource type
            if (
                resource_type not in ACCEPTED_PAGE_RESOURCE_TYPES
                and compliance_type != ComplianceVerdict.NON_COMPLIANT.value
            ):
                continue
            resource_id = entry.get("ResourceId")
            if not resource_id:
                LOGGER.debug("ResourceId undefined in ComplianceByResource entry %s", entry)
                continue
            try:
                verdicts[resource_id] = self.evaluate_protection(
                    resource_id, resource_id, evaluation, shield_handler, config_client
                )
            except Exception as exc:
                LOGGER.warning(
                    "Encountered an error evaluating resource %s from ScheduledNotification event: %s",
                    resource_id,
                    exc,
                )
        return verdicts

    def handle_evaluation(
        self,
        item: events.ConfigurationItem,
        evaluation: events.ConfigEvaluationEvent,
        shield_handler: ShieldHandler,
        config_client,  # type: ignore[no-untyped-def]
    ) -> dict[str, ComplianceVerdict]:
        """Evaluate the single protection named by a configuration item change."""
        resource_id = item.resource_id
        if not resource_id:
            LOGGER.error("Configuration item has no resourceId; nothing to evaluate")
            return {}

        if not item.aws_region or not item.is_present:
            LOGGER.info(
                "Invalid configuration item resource=%s type=%s region=%s status=%s",
                resource_id,
                item.resource_type,
                item.aws_region,
                item.status,
            )
            verdict = ComplianceVerdict.NOT_APPLICABLE
            self.set_compliance(verdict, resource_id, evaluation.result_token, config_client)
            return {resource_id: verdict}

        try:
            verdict = self.evaluate_protection(resource_id, resource_id, evaluation, shield_handler, config_client)
        except Exception as exc:
            LOGGER.error(
                "Encountered error evaluating resource %s from ConfigurationItemChange event account=%s: %s",
                resource_id,
                evaluation.account_id,
                exc,
            )
            return {}
        return {resource_id: verdict}

    def evaluate_protection(
        self,
        protection_id: str,
        ledger_resource_id: str,
        evaluation: events.ConfigEvaluationEvent,
        shield_handler: ShieldHandler,
        config_client,  # type: ignore[no-untyped-def]
    ) -> ComplianceVerdict:
        """Classify, inspect, record and (when needed) queue one protection."""
        start = time.perf_counter()
        resource = shield_handler.get_protection(protection_id)
        validation = inspector.is_valid(resource)
        compliant = validation.is_valid and inspector.is_compliant(resource)
        verdict = inspector.decide_verdict(validation, compliant)

        if validation.is_incomplete_eip:
            self._notifier.publish_remediation_error(evaluation.account_id, resource.protection_id, INCOMPLETE_EIP_REASON)
        elif not validation.is_valid:
            LOGGER.info(
                "Resource %s is not supported for remediation account=%s protection=%s",
                resource.resource_arn,
                evaluation.account_id,
                resource.protection_id,
            )
        elif verdict is ComplianceVerdict.NON_COMPLIANT:
            self.remediate_non_compliant_resource(resource.protection_id, evaluation)

        self.set_compliance(verdict, ledger_resource_id, evaluation.result_token, config_client)
        metrics.put_metric(
            component="ConfigEval",
            action="evaluate",
            result=verdict.value,
            latency_ms=(time.perf_counter() - start) * 1000,
            protection_id=resource.protection_id,
            resource_type=resource.resource_type.value,
        )
        return verdict

    def remediate_non_compliant_resource(self, protection_id: str, evaluation: events.ConfigEvaluationEvent) -> None:
        try:
            self._queue.enqueue(evaluation.account_id, protection_id, evaluation.result_token)
        except (ClientError, BotoCoreError, RuntimeError) as exc:
            LOGGER.error("Failed to enqueue remediation request for protection %s: %s", protection_id, exc)

    def set_compliance(
        self,
        verdict: ComplianceVerdict,
        resource_id: str,
        result_token: str,
        config_client,  # type: ignore[no-untyped-def]
    ) -> bool:
        """Write the verdict to AWS Config; failures are retried by the next evaluation."""
        try:
            response = config_client.put_evaluations(
                Evaluations=[
                    {
                        "ComplianceResourceType": LEDGER_RESOURCE_TYPE,
                        "ComplianceResourceId": resource_id,
                        "ComplianceType": verdict.value,
                        "OrderingTimestamp": self._clock(),
                    }
                ],
                ResultToken=result_token,
            )
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Failed to put evaluation for %s in AWS Config: %s", resource_id, exc)
            return False

        failed = response.get("FailedEvaluations") or []
        if failed:
            LOGGER.error(
                "Failed to put evaluations in AWS Config. This action will be automatically retried upon "
                "the next evaluation. resource=%s failed=%s",
                resource_id,
                failed,
            )
            return False
        LOGGER.info("Put evaluation in AWS Config resource=%s compliance=%s", resource_id, verdict.value)
        return True


@lru_cache(maxsize=1)
def _settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(LOGGER, settings.log_level)
    return settings


def lambda_handler(event: Event, context: Any) -> dict[str, Any]:
    """AWS Lambda handler for Config custom rule invocations."""
    manager = ConfigEvalManager.from_settings(_settings())
    return manager.handle(event)
