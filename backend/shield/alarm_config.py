"""CloudWatch alarm definitions backing the Route 53 health checks for each resource type."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .errors import ConfigurationError
from .types import ShieldResource

LOGGER = logging.getLogger(__name__)

STATISTICS = frozenset({"Average", "Sum", "Minimum", "Maximum", "SampleCount"})
EVALUATION_PERIODS = 20

EIP_METRIC_CONFIG_ENV = "EIP_METRIC_CONFIG"
NLB_METRIC_CONFIG_ENV = "NLB_METRIC_CONFIG"
ELB_METRIC_CONFIG_ENV = "ELB_METRIC_CONFIG"
CF_METRIC_CONFIG_ENV = "CF_METRIC_CONFIG"

DEFAULT_METRIC_CONFIGS = {
    EIP_METRIC_CONFIG_ENV: "85,Average,1000,Sum",
    NLB_METRIC_CONFIG_ENV: "1000,Average,1000,Sum",
    ELB_METRIC_CONFIG_ENV: "1000,Sum,1000,Sum",
    CF_METRIC_CONFIG_ENV: "0.05,Average,0.05,Average",
}


@dataclass(slots=True, frozen=True)
class AlarmMetricConfig:
    metric: str
    statistic: str
    threshold: float
    dimension_name: str
    evaluation_periods: int
    namespace: str


@dataclass(slots=True, frozen=True)
class MetricThresholds:
    """Threshold/statistic pairs for the two metrics of a resource type."""

    metric1_threshold: float
    metric1_stat: str
    metric2_threshold: float
    metric2_stat: str


def parse_metric_config(value: str) -> MetricThresholds:
    """Parse a ``"threshold,statistic,threshold,statistic"`` string."""
    parts = "".join(value.split()).split(",")
    if len(parts) != 4:
        raise ConfigurationError(f"Expected 4 comma separated values in metric config, got {value!r}")
    try:
        first, second = float(parts[0]), float(parts[2])
    except ValueError as exc:
        raise ConfigurationError(f"Invalid threshold in metric config {value!r}") from exc
    for stat in (parts[1], parts[3]):
        if stat not in STATISTICS:
            raise ConfigurationError(f"Unsupported statistic {stat!r} in metric config {value!r}")
    return MetricThresholds(
        metric1_threshold=first,
        metric1_stat=parts[1],
        metric2_threshold=second,
        metric2_stat=parts[3],
    )


def _pair(
    thresholds: MetricThresholds,
    *,
    metrics: tuple[str, str],
    dimension_name: str,
    namespace: str,
) -> tuple[AlarmMetricConfig, ...]:
    return (
        AlarmMetricConfig(
            metric=metrics[0],
            statistic=thresholds.metric1_stat,
            threshold=thresholds.metric1_threshold,
            dimension_name=dimension_name,
            evaluation_periods=EVALUATION_PERIODS,
            namespace=namespace,
        ),
        AlarmMetricConfig(
            metric=metrics[1],
            statistic=thresholds.metric2_stat,
            threshold=thresholds.metric2_threshold,
            dimension_name=dimension_name,
            evaluation_periods=EVALUATION_PERIODS,
            namespace=namespace,
        ),
    )


def build_alarm_configs(env: Mapping[str, str]) -> Mapping[ShieldResource, tuple[AlarmMetricConfig, ...]]:
    """Build the per-resource-type alarm definitions from environment values."""

    def _thresholds(name: str) -> MetricThresholds:
        raw = env.get(name) or DEFAULT_METRIC_CONFIGS[name]
        return parse_metric_config(raw)

    eip = _thresholds(EIP_METRIC_CONFIG_ENV)
    nlb = _thresholds(NLB_METRIC_CONFIG_ENV)
    elb = _thresholds(ELB_METRIC_CONFIG_ENV)
    cf = _thresholds(CF_METRIC_CONFIG_ENV)

    configs = {
        ShieldResource.ELASTIC_IP: _pair(
            eip, metrics=("CPUUtilization", "NetworkIn"), dimension_name="InstanceId", namespace="AWS/EC2"
        ),
        ShieldResource.NETWORK_LOAD_BALANCER: _pair(
            nlb, metrics=("ActiveFlowCount", "NewFlowCount"), dimension_name="LoadBalancer", namespace="AWS/NetworkELB"
        ),
        ShieldResource.CLASSIC_LOAD_BALANCER: _pair(
            elb, metrics=("HTTPCode_ELB_4XX", "HTTPCode_ELB_5XX"), dimension_name="LoadBalancerName", namespace="AWS/ELB"
        ),
        ShieldResource.APPLICATION_LOAD_BALANCER: _pair(
            elb,
            metrics=("HTTPCode_ELB_4XX_Count", "HTTPCode_ELB_5XX_Count"),
            dimension_name="LoadBalancer",
            namespace="AWS/ApplicationELB",
        ),
        ShieldResource.CLOUDFRONT_DISTRIBUTION: _pair(
            cf, metrics=("4xxErrorRate", "5xxErrorRate"), dimension_name="DistributionId", namespace="AWS/CloudFront"
        ),
        ShieldResource.INCOMPLETE_ELASTIC_IP: (),
        ShieldResource.UNKNOWN: (),
    }
    LOGGER.debug("Loaded alarm configs for %d resource types", len(configs))
    return MappingProxyType(configs)
