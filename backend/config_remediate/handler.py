"""AWS Lambda entrypoint consuming remediation requests from the FIFO queue."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Callable, Mapping

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..shield import inspector
from ..shield.credentials import CrossAccountAccessor
from ..shield.errors import CrossAccountAccessError, ProtectionLookupError
from ..shield.notifier import INCOMPLETE_EIP_REASON, Notifier
from ..shield.protection import ShieldHandler
from ..shield.settings import Settings, configure_logging
from ..shield.types import Event, ProtectedResource, RemediationRequest
from .remediator import ShieldRemediator

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)

SESSION_NAME = "FMS-Shield-ConfigRemediateManager"

STATUS_REMEDIATED = "remediated"
STATUS_ALREADY_COMPLIANT = "already-compliant"
STATUS_INCOMPLETE_EIP = "incomplete-eip"
STATUS_UNSUPPORTED = "unsupported"
STATUS_DROPPED = "dropped"
STATUS_NOT_REMEDIATED = "not-remediated"

HandlerFactory = Callable[[boto3.Session], ShieldHandler]
RemediatorFactory = Callable[[ShieldHandler, ProtectedResource, boto3.Session, str], ShieldRemediator]


class ConfigRemediateManager:
    """Processes remediation requests one at a time, re-checking compliance before acting."""

    def __init__(
        self,
        *,
        accessor: CrossAccountAccessor,
        notifier: Notifier,
        handler_factory: HandlerFactory,
        remediator_factory: RemediatorFactory,
    ):
        self._accessor = accessor
        self._notifier = notifier
        self._handler_factory = handler_factory
        self._remediator_factory = remediator_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> ConfigRemediateManager:
        notifier = Notifier(settings.topic_arn, region=settings.region)

        def _remediator(
            shield_handler: ShieldHandler, resource: ProtectedResource, session: boto3.Session, account_id: str
        ) -> ShieldRemediator:
            return ShieldRemediator(
                shield_handler,
                resource,
                region=settings.region,
                account_id=account_id,
                cloudwatch_client=session.client("cloudwatch", region_name=settings.region),
                route53_client=session.client("route53"),
                notifier=notifier,
                alarm_configs=settings.alarm_configs_for(resource.resource_type),
                step_delay_seconds=settings.step_delay_seconds,
            )

        return cls(
            accessor=CrossAccountAccessor(
                role_name=settings.cross_account_role,
                session_name=SESSION_NAME,
                partition=settings.partition,
                region=settings.region,
            ),
            notifier=notifier,
            handler_factory=lambda session: ShieldHandler.from_session(
                session, region=settings.region, partition=settings.partition
            ),
            remediator_factory=_remediator,
        )

    def handle(self, event: Mapping[str, Any]) -> dict[str, list[dict[str, str]]]:
        """Process an SQS batch and return the partial batch failure response."""
        records = event.get("Records") or []
        failures: list[dict[str, str]] = []
        for record in records:
            message_id = str(record.get("messageId", ""))
            if failures:
                # FIFO ordering: once a message fails, later messages of the group must wait
                failures.append({"itemIdentifier": message_id})
                continue
            try:
                self.process_record(record)
            except Exception as exc:
                LOGGER.exception("Remediation request %s failed and will be redelivered: %s", message_id, exc)
                failures.append({"itemIdentifier": message_id})
        return {"batchItemFailures": failures}

    def process_record(self, record: Mapping[str, Any]) -> str:
        try:
            request = RemediationRequest.from_json(str(record.get("body", "")))
        except ValueError as exc:
            # dropped, not redelivered
            LOGGER.error("Discarding malformed remediation request %s: %s", record.get("messageId"), exc)
            return STATUS_DROPPED
        LOGGER.info(
            "Received remediation request %s protection=%s account=%s timestamp=%s",
            record.get("messageId"),
            request.shield_protection_id,
            request.account_id,
            request.timestamp,
        )
        return self.remediate(request)

    def remediate(self, request: RemediationRequest) -> str:
        account_id = request.account_id
        protection_id = request.shield_protection_id
        try:
            session = self._accessor.assume(account_id)
        except CrossAccountAccessError as exc:
            LOGGER.warning(
                "Unable to assume credentials in account %s, please ensure the shield automations "
                "prerequisite stack is deployed in the account: %s",
                account_id,
                exc,
            )
            return STATUS_DROPPED

        shield_handler = self._handler_factory(session)
        try:
            resource = shield_handler.get_protection(protection_id)
            validation = inspector.is_valid(resource)
            compliant = inspector.is_compliant(resource)
        except (ClientError, BotoCoreError, ProtectionLookupError) as exc:
            LOGGER.error("Error occurred while retrieving Shield Protection details for %s: %s", protection_id, exc)
            return STATUS_DROPPED

        if validation.is_incomplete_eip:
            self._notifier.publish_remediation_error(account_id, protection_id, INCOMPLETE_EIP_REASON)
            return STATUS_INCOMPLETE_EIP
        if not validation.is_valid:
            LOGGER.debug(
                "Received remediation request for unsupported protected resource %s (protection %s)",
                resource.resource_arn,
                protection_id,
            )
            return STATUS_UNSUPPORTED
        if compliant:
            LOGGER.info(
                "Shield Protection %s is already compliant healthChecks=%s",
                protection_id,
                list(resource.health_check_ids or ()),
            )
            return STATUS_ALREADY_COMPLIANT

        remediator = self._remediator_factory(shield_handler, resource, session, account_id)
        health_check_id = remediator.execute_remediation()
        if health_check_id:
            LOGGER.info("Remediation successful for Shield Protection %s in account %s", protection_id, account_id)
            return STATUS_REMEDIATED
        return STATUS_NOT_REMEDIATED


@lru_cache(maxsize=1)
def _settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(LOGGER, settings.log_level)
    return settings


def lambda_handler(event: Event, context: Any) -> dict[str, list[dict[str, str]]]:
    """AWS Lambda handler for SQS remediation batches."""
    manager = ConfigRemediateManager.from_settings(_settings())
    return manager.handle(event)
