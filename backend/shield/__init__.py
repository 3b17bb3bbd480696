"""Shared Shield protection helpers used by the evaluation and remediation Lambdas."""

__all__ = [
    "alarm_config",
    "classifier",
    "credentials",
    "errors",
    "inspector",
    "metrics",
    "notifier",
    "protection",
    "settings",
    "types",
]
