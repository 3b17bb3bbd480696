"""Utility helpers for emitting AWS EMF metrics."""
from __future__ import annotations

from datetime import datetime, timezone

import json
import logging
import time

LOGGER = logging.getLogger(__name__)

NAMESPACE = "ShieldAutomations"
DIMENSIONS = [["Component", "Action", "Result"]]


def now() -> datetime:
    """Return a timezone-aware timestamp."""
    return datetime.now(timezone.utc)


def put_metric(
    *,
    component: str,
    action: str,
    result: str,
    latency_ms: float | None = None,
    protection_id: str | None = None,
    resource_type: str | None = None,
) -> None:
    """Emit an Embedded Metric Format (EMF) log entry for an evaluation or remediation."""
    metric = {
        "_aws": {
            "Timestamp": int(time.time() * 1000),
            "CloudWatchMetrics": [
                {
                    "Namespace": NAMESPACE,
                    "Dimensions": DIMENSIONS,
                    "Metrics": [
                        {"Name": "Count", "Unit": "Count"},
                        {"Name": "Latency", "Unit": "Milliseconds"},
                    ],
                }
            ],
        },
        "Component": component,
        "Action": action,
        "Result": result,
        "Count": 1,
        "Latency": latency_ms,
        "ProtectionId": protection_id,
        "ResourceType": resource_type,
    }
    LOGGER.info("EMF %s", json.dumps({k: v for k, v in metric.items() if v is not None}))
