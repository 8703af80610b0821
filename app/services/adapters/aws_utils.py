import aioboto3
from typing import Dict
from botocore.config import Config as BotoConfig

from app.schemas.connections import Credential

# Standardized boto config with timeouts to prevent indefinite hangs
DEFAULT_BOTO_CONFIG = BotoConfig(
    read_timeout=30,
    connect_timeout=10,
    retries={"max_attempts": 3, "mode": "adaptive"}
)

# Cost Explorer and Budgets are global services served from us-east-1
AWS_GLOBAL_BILLING_REGION = "us-east-1"

# Mapping CamelCase to snake_case for aioboto3 credentials
AWS_CREDENTIAL_MAPPING = {
    "AccessKeyId": "aws_access_key_id",
    "SecretAccessKey": "aws_secret_access_key",
    "SessionToken": "aws_session_token",
    "aws_access_key_id": "aws_access_key_id",
    "aws_secret_access_key": "aws_secret_access_key",
    "aws_session_token": "aws_session_token",
}


def map_aws_credentials(credentials: Dict[str, str]) -> Dict[str, str]:
    """
    Maps a credentials dictionary to valid aioboto3 session kwargs.
    Handles both CamelCase (AWS standard) and snake_case (boto3) keys.
    """
    mapped: Dict[str, str] = {}
    if not credentials:
        return mapped

    for src, dst in AWS_CREDENTIAL_MAPPING.items():
        if src in credentials:
            mapped[dst] = credentials[src]

    return mapped


def get_boto_session(credential: Credential) -> aioboto3.Session:
    """
    Session for a resolved credential.

    Saved profiles carry static keys; ambient profiles (and saved profiles that
    only name a CLI profile) defer to the shared config chain.
    """
    keys = map_aws_credentials(credential.values)
    if keys:
        return aioboto3.Session(**keys)
    return aioboto3.Session(profile_name=credential.values.get("profile_name", credential.profile_name))
