"""AWS credential validation via STS GetCallerIdentity."""

from __future__ import annotations

import asyncio
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from logpilot.utils.logger import get_logger

logger = get_logger(__name__)


class CredentialValidationError(Exception):
    """Supplied AWS credentials were rejected or could not be checked."""


class AwsCredentials(BaseModel):
    model_config = {"populate_by_name": True}

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    region: str = "us-east-1"


class AwsAccountInfo(BaseModel):
    account_id: str
    arn: str
    user_id: str


async def validate_credentials(credentials: AwsCredentials, sts_client=None) -> AwsAccountInfo:
    """Confirm the credentials resolve to an identity and describe it."""
    client = sts_client or boto3.client(
        "sts",
        region_name=credentials.region,
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token or None,
    )
    try:
        response = await asyncio.to_thread(client.get_caller_identity)
    except (ClientError, BotoCoreError) as e:
        logger.warning("AWS credential validation failed", extra={"action": "sts_validate_failed", "extra": str(e)})
        raise CredentialValidationError(f"AWS authentication failed: {e}") from e

    account, arn, user_id = response.get("Account"), response.get("Arn"), response.get("UserId")
    if not account or not arn or not user_id:
        raise CredentialValidationError("AWS authentication failed: Invalid response from AWS STS")

    logger.info("AWS credentials validated", extra={"action": "sts_validated", "extra": {"account_id": account}})
    return AwsAccountInfo(account_id=account, arn=arn, user_id=user_id)
