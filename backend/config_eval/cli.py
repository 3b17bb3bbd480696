"""Command-line interface for inspecting (and optionally remediating) a single Shield Protection."""
from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Any, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config_remediate.remediator import ShieldRemediator
from ..shield import inspector
from ..shield.credentials import CrossAccountAccessor
from ..shield.errors import CrossAccountAccessError, HealthCheckCreationError, ProtectionLookupError
from ..shield.notifier import Notifier
from ..shield.protection import ShieldHandler
from ..shield.settings import Settings
from ..shield.types import ComplianceVerdict, ProtectedResource

LOGGER = logging.getLogger(__name__)

SESSION_NAME = "FMS-Shield-OperatorCli"


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level)
    settings = Settings.from_env()
    region = args.region or settings.region

    try:
        session = _resolve_session(args.profile, region, args.account_id, settings)
    except CrossAccountAccessError as exc:
        LOGGER.error("%s", exc)
        return 1

    shield_handler = ShieldHandler.from_session(session, region=region, partition=settings.partition)
    try:
        resource = shield_handler.get_protection(args.protection_id)
    except (ClientError, BotoCoreError, ProtectionLookupError) as exc:
        LOGGER.error("Unable to inspect protection %s: %s", args.protection_id, exc)
        return 1

    report = build_report(resource)
    if args.remediate and report["verdict"] == ComplianceVerdict.NON_COMPLIANT.value and report["valid"]:
        remediator = ShieldRemediator(
            shield_handler,
            resource,
            region=region,
            account_id=args.account_id or _caller_account(session),
            cloudwatch_client=session.client("cloudwatch", region_name=region),
            route53_client=session.client("route53"),
            notifier=Notifier(settings.topic_arn, region=region),
            alarm_configs=settings.alarm_configs_for(resource.resource_type),
            step_delay_seconds=settings.step_delay_seconds,
        )
        try:
            report["healthCheckId"] = remediator.execute_remediation()
        except (ClientError, BotoCoreError, HealthCheckCreationError) as exc:
            LOGGER.error("Remediation of protection %s failed: %s", args.protection_id, exc)
            return 1

    _emit(report, args.out)
    return 0


def build_report(resource: ProtectedResource) -> dict[str, Any]:
    """Summarize the classification and compliance verdict of one protection."""
    validation = inspector.is_valid(resource)
    compliant = validation.is_valid and inspector.is_compliant(resource)
    verdict = inspector.decide_verdict(validation, compliant)
    return {
        "protectionId": resource.protection_id,
        "resourceArn": resource.resource_arn,
        "resourceType": resource.resource_type.value,
        "resourceId": resource.resource_id,
        "healthCheckIds": list(resource.health_check_ids or ()),
        "valid": validation.is_valid,
        "incompleteEIP": validation.is_incomplete_eip,
        "verdict": verdict.value,
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect a Shield Protection for health check compliance")
    parser.add_argument("--protection-id", required=True, help="Shield Protection id to inspect")
    parser.add_argument("--account-id", default=None, help="Member account to assume CROSS_ACCOUNT_ROLE in")
    parser.add_argument("--remediate", action="store_true", help="Create health checks when non-compliant")
    parser.add_argument("--profile", help="AWS profile name", default=None)
    parser.add_argument("--region", help="Default AWS region", default=None)
    parser.add_argument("--out", help="Write JSON report to path", default=None)
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"), help="Logging level (default: INFO)")
    return parser


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


def _resolve_session(
    profile: str | None, region: str, account_id: str | None, settings: Settings
) -> boto3.Session:
    base = boto3.Session(profile_name=profile, region_name=region)
    if not account_id:
        return base
    accessor = CrossAccountAccessor(
        role_name=settings.cross_account_role,
        session_name=SESSION_NAME,
        partition=settings.partition,
        region=region,
        sts_client=base.client("sts"),
    )
    return accessor.assume(account_id)


def _caller_account(session: boto3.Session) -> str:
    return session.client("sts").get_caller_identity().get("Account", "unknown")


def _emit(report: dict[str, Any], path: str | None) -> None:
    payload = json.dumps(report, indent=2, default=str)
    if not path:
        print(payload)
        return
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(payload)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
