"""Cross-account role assumption for member accounts."""
from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import CrossAccountAccessError

LOGGER = logging.getLogger(__name__)

SESSION_DURATION_SECONDS = 900


class CrossAccountAccessor:
    """Exchanges an account id for a short-lived session scoped to a fixed role.

    Sessions are created per call and never cached.
    """

    def __init__(
        self,
        *,
        role_name: str,
        session_name: str,
        partition: str = "aws",
        region: str | None = None,
        sts_client=None,  # type: ignore[no-untyped-def]
    ):
        self._role_name = role_name
        self._session_name = session_name
        self._partition = partition
        self._region = region
        self._sts = sts_client

    def role_arn(self, account_id: str) -> str:
        return f"arn:{self._partition}:iam::{account_id}:role/{self._role_name}"

    def assume(self, account_id: str) -> boto3.Session:
        if not self._role_name:
            raise CrossAccountAccessError(account_id, "cross account role name is not configured")
        sts = self._sts or boto3.client("sts", region_name=self._region)
        try:
            response = sts.assume_role(
                RoleArn=self.role_arn(account_id),
                RoleSessionName=self._session_name,
                DurationSeconds=SESSION_DURATION_SECONDS,
            )
        except (ClientError, BotoCoreError) as exc:
            raise CrossAccountAccessError(account_id, str(exc)) from exc

        credentials = response.get("Credentials") or {}
        if not credentials.get("AccessKeyId") or not credentials.get("SecretAccessKey"):
            LOGGER.debug("AssumeRole returned undefined credentials for account %s", account_id)
            raise CrossAccountAccessError(account_id, "STS returned undefined credentials")

        LOGGER.info("Assumed cross account role %s in account %s", self._role_name, account_id)
        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials.get("SessionToken"),
            region_name=self._region,
        )
