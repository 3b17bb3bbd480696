"""Decoding of AWS Config custom rule invocations."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

SCHEDULED_NOTIFICATION = "ScheduledNotification"
CONFIGURATION_ITEM_CHANGE = "ConfigurationItemChange"

# configurationItemStatus values describing a resource that currently exists
PRESENT_STATUSES = frozenset({"OK", "ResourceDiscovered"})


@dataclass(slots=True, frozen=True)
class ConfigurationItem:
    resource_id: str | None
    aws_region: str | None
    status: str | None
    resource_type: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ConfigurationItem:
        return cls(
            resource_id=payload.get("resourceId") or None,
            aws_region=payload.get("awsRegion") or None,
            status=payload.get("configurationItemStatus") or payload.get("status") or None,
            resource_type=payload.get("resourceType") or None,
        )

    @property
    def is_present(self) -> bool:
        return self.status in PRESENT_STATUSES


@dataclass(slots=True, frozen=True)
class ScheduledNotification:
    notification_time: str | None = None

    message_type = SCHEDULED_NOTIFICATION


@dataclass(slots=True, frozen=True)
class ConfigurationItemChange:
    configuration_item: ConfigurationItem

    message_type = CONFIGURATION_ITEM_CHANGE


@dataclass(slots=True, frozen=True)
class UnsupportedNotification:
    message_type: str


InvokingEvent = Union[ScheduledNotification, ConfigurationItemChange, UnsupportedNotification]


@dataclass(slots=True, frozen=True)
class ConfigEvaluationEvent:
    account_id: str
    rule_name: str
    result_token: str
    invoking_event: InvokingEvent


def decode_invoking_event(payload: Mapping[str, Any]) -> InvokingEvent:
    message_type = str(payload.get("messageType") or "")
    if message_type == SCHEDULED_NOTIFICATION:
        return ScheduledNotification(notification_time=payload.get("notificationCreationTime"))
    if message_type == CONFIGURATION_ITEM_CHANGE:
        item = payload.get("configurationItem")
        if not isinstance(item, Mapping):
            raise ValueError("ConfigurationItemChange notification has no configurationItem")
        return ConfigurationItemChange(configuration_item=ConfigurationItem.from_dict(item))
    return UnsupportedNotification(message_type=message_type or "unknown")


def decode_event(event: Mapping[str, Any]) -> ConfigEvaluationEvent:
    """Decode a Config rule Lambda event into its typed representation."""
    raw_invoking = event.get("invokingEvent")
    if isinstance(raw_invoking, str):
        invoking_payload = json.loads(raw_invoking)
    elif isinstance(raw_invoking, Mapping):
        invoking_payload = raw_invoking
    else:
        raise ValueError("Config rule event has no invokingEvent")

    account_id = event.get("accountId") or invoking_payload.get("awsAccountId")
    if not account_id:
        raise ValueError("Config rule event has no accountId")
    return ConfigEvaluationEvent(
        account_id=str(account_id),
        rule_name=str(event.get("configRuleName") or ""),
        result_token=str(event.get("resultToken") or invoking_payload.get("resultToken") or ""),
        invoking_event=decode_invoking_event(invoking_payload),
    )
