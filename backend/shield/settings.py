"""Environment-driven configuration for the Shield automation Lambdas."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from .alarm_config import AlarmMetricConfig, build_alarm_configs
from .errors import ConfigurationError
from .types import ShieldResource

LOGGER = logging.getLogger(__name__)

REGION_ENV = "AWS_REGION"
PARTITION_ENV = "PARTITION"
CROSS_ACCOUNT_ROLE_ENV = "CROSS_ACCOUNT_ROLE"
TOPIC_ARN_ENV = "TOPIC_ARN"
REMEDIATION_QUEUE_ENV = "REMEDIATION_QUEUE"
STEP_DELAY_ENV = "HEALTH_CHECK_STEP_DELAY"
LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_REGION = "us-east-1"
DEFAULT_STEP_DELAY_SECONDS = 2.0


@dataclass(slots=True, frozen=True)
class Settings:
    region: str = DEFAULT_REGION
    partition: str = "aws"
    cross_account_role: str = ""
    topic_arn: str | None = None
    remediation_queue_url: str | None = None
    step_delay_seconds: float = DEFAULT_STEP_DELAY_SECONDS
    log_level: str = "INFO"
    alarm_configs: Mapping[ShieldResource, tuple[AlarmMetricConfig, ...]] = field(
        default_factory=lambda: build_alarm_configs({})
    )

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        raw_delay = env.get(STEP_DELAY_ENV) or str(DEFAULT_STEP_DELAY_SECONDS)
        try:
            step_delay = float(raw_delay)
        except ValueError as exc:
            raise ConfigurationError(f"{STEP_DELAY_ENV} must be a number, got {raw_delay!r}") from exc
        if step_delay < 0:
            raise ConfigurationError(f"{STEP_DELAY_ENV} must not be negative")

        settings = cls(
            region=env.get(REGION_ENV) or DEFAULT_REGION,
            partition=env.get(PARTITION_ENV) or "aws",
            cross_account_role=env.get(CROSS_ACCOUNT_ROLE_ENV, ""),
            topic_arn=env.get(TOPIC_ARN_ENV) or None,
            remediation_queue_url=env.get(REMEDIATION_QUEUE_ENV) or None,
            step_delay_seconds=step_delay,
            log_level=(env.get(LOG_LEVEL_ENV) or "INFO").upper(),
            alarm_configs=build_alarm_configs(env),
        )
        if not settings.cross_account_role:
            LOGGER.warning("%s not configured; cross-account role assumption will fail", CROSS_ACCOUNT_ROLE_ENV)
        return settings

    def alarm_configs_for(self, resource_type: ShieldResource) -> tuple[AlarmMetricConfig, ...]:
        return tuple(self.alarm_configs.get(resource_type, ()))


def configure_logging(logger: logging.Logger, level: str) -> None:
    """Apply ``level`` to a handler module logger, falling back to INFO."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
