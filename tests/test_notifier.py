"""SNS notifications for protections that cannot be auto-remediated."""
from __future__ import annotations

import pytest

boto3 = pytest.importorskip("boto3")
pytest.importorskip("botocore")
from botocore.stub import Stubber

from backend.shield import notifier as notifier_module
from backend.shield.notifier import Notifier


REGION = "us-east-1"
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:shield-automations"


class RecordingSns:
    def __init__(self):
        self.calls = []

    def publish(self, **kwargs):  # type: ignore[no-untyped-def]
        self.calls.append(kwargs)
        return {"MessageId": "m-1"}


def test_publish_remediation_error():
    sns = boto3.client("sns", region_name=REGION)
    expected_body = (
        "The Shield Protection prot-1 in account 123456789012 could not be auto-remediated "
        "for the following reason:\n\n" + notifier_module.HEALTH_CHECK_LIMIT_REASON
    )
    with Stubber(sns) as stubber:
        stubber.add_response(
            "publish",
            {"MessageId": "m-1"},
            {
                "TopicArn": TOPIC_ARN,
                "Message": expected_body,
                "Subject": notifier_module.REMEDIATION_ERROR_SUBJECT,
            },
        )
        Notifier(TOPIC_ARN, client=sns).publish_remediation_error(
            "123456789012", "prot-1", notifier_module.HEALTH_CHECK_LIMIT_REASON
        )
        stubber.assert_no_pending_responses()


def test_subject_is_truncated():
    sns = RecordingSns()

    Notifier(TOPIC_ARN, client=sns).publish("s" * 150, "body")

    assert len(sns.calls[0]["Subject"]) == 100


def test_publish_without_topic_is_skipped():
    sns = RecordingSns()

    Notifier(None, client=sns).publish("subject", "body")

    assert sns.calls == []


def test_publish_failure_is_logged(caplog):
    sns = boto3.client("sns", region_name=REGION)
    with Stubber(sns) as stubber:
        stubber.add_client_error("publish", service_error_code="AuthorizationError")
        Notifier(TOPIC_ARN, client=sns).publish("subject", "body")

    assert "Error publishing Shield topic message" in caplog.text
