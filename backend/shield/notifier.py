"""Formats and publishes SNS notifications for protections that cannot be auto-remediated."""
from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

LOGGER = logging.getLogger(__name__)

SNS_SUBJECT_LIMIT = 100

REMEDIATION_ERROR_SUBJECT = (
    "[Automations for AWS Firewall Manager] Shield resource could not be auto-remediated"
)

INCOMPLETE_EIP_REASON = (
    "The Elastic IP associated with this Shield Protection must be attached to an EC2 Instance or "
    "Network Load Balancer for automatic Health-check creation to occur. \n\n"
    "To view the Elastic IP associated with this Shield Protection, sign-in to the AWS Config console "
    'using the account listed above and navigate to the "Resources" tab. Next, copy & paste the Shield '
    'Protection ID from above into the "resource identifier" search bar and select the appropriate '
    'resource. The associated Elastic IP will be listed under "Protected resource ARN" in the Details pane. \n\n'
    "Once you have associated the protected Elastic IP with an EC2 Instance or Network Load Balancer, "
    "remediation will continue automatically within 1 day. \n\n"
    "You may choose to ignore this message if you do not wish for the resource to be included in Shield "
    "Health-based detection at this time."
)

HEALTH_CHECK_LIMIT_REASON = (
    "New Route 53 Health Checks could not be created because your account has reached the service limit "
    "for Health Checks. Once resolved, remediation will continue automatically."
)

CLOUDWATCH_ALARM_LIMIT_REASON = (
    "New CloudWatch Metric Alarms could not be created because your account has reached the service limit "
    "for Metric Alarms. Once resolved, remediation will continue automatically."
)


def error_message_body(account_id: str, protection_id: str, reason: str) -> str:
    """Render the body sent when a protection could not be auto-remediated."""
    return (
        f"The Shield Protection {protection_id} in account {account_id} could not be auto-remediated "
        f"for the following reason:\n\n{reason}"
    )


class Notifier:
    """Publishes messages to the Shield automations SNS topic."""

    def __init__(self, topic_arn: str | None, *, client=None, region: str | None = None):  # type: ignore[no-untyped-def]
        self._topic_arn = topic_arn
        self._client = client
        self._region = region

    def publish(self, subject: str, message: str) -> None:
        LOGGER.info("Publishing notification subject=%s", subject)
        if not self._topic_arn:
            LOGGER.warning("SNS topic not configured; skipping publish")
            return
        client = self._client or boto3.client("sns", region_name=self._region)
        try:
            client.publish(
                TopicArn=self._topic_arn,
                Message=message,
                Subject=subject[:SNS_SUBJECT_LIMIT],
            )
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error publishing Shield topic message: %s", exc)

    def publish_remediation_error(self, account_id: str, protection_id: str, reason: str) -> None:
        self.publish(REMEDIATION_ERROR_SUBJECT, error_message_body(account_id, protection_id, reason))
