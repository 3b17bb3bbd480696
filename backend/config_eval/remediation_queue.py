"""Remediation requests sent from the evaluation Lambda to the remediation FIFO queue."""
from __future__ import annotations

import logging

import boto3

from ..shield.types import RemediationRequest

LOGGER = logging.getLogger(__name__)

# Constant group id keeps the FIFO queue at a concurrency of one.
MESSAGE_GROUP_ID = "FMS-Shield-Remediation"


class RemediationQueueClient:
    def __init__(self, queue_url: str | None, *, client=None, region: str | None = None):  # type: ignore[no-untyped-def]
        self._queue_url = queue_url
        self._client = client
        self._region = region

    @staticmethod
    def build_request(account_id: str, shield_protection_id: str, result_token: str) -> str:
        """Build the JSON body for a remediation request."""
        return RemediationRequest.create(account_id, shield_protection_id, result_token).to_json()

    def send(self, request: str) -> str | None:
        """Enqueue a serialized remediation request, returning the SQS message id."""
        if not self._queue_url:
            raise RuntimeError("Remediation queue URL is not configured")
        client = self._client or boto3.client("sqs", region_name=self._region)
        response = client.send_message(
            QueueUrl=self._queue_url,
            MessageBody=request,
            MessageGroupId=MESSAGE_GROUP_ID,
        )
        message_id = response.get("MessageId")
        LOGGER.info("Remediation message sent messageId=%s body=%s", message_id, request)
        return message_id

    def enqueue(self, account_id: str, shield_protection_id: str, result_token: str) -> str | None:
        return self.send(self.build_request(account_id, shield_protection_id, result_token))
