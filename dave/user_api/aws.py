"""boto3 client construction and account context.

Clients are created once during the app lifespan and injected into the
components that use them -- there are no module-level clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

_CLIENT_CONFIG = Config(
    connect_timeout=3,
    max_pool_connections=100,
    retries={"mode": "standard"},
)


def create_client(service: str, region: str | None = None, endpoint_url: str | None = None) -> Any:
    """Create a boto3 client with the shared connection settings.

    Args:
        service: Service name (``ec2``, ``iam``, ``ssm``, ``sts``, ``dynamodb``).
        region: AWS region name; ``None`` uses the default provider chain.
        endpoint_url: Optional endpoint override (DynamoDB Local, LocalStack).
    """
    return boto3.client(service, region_name=region, endpoint_url=endpoint_url, config=_CLIENT_CONFIG)


@dataclass(frozen=True)
class AwsContext:
    """Account coordinates needed to build resource ARNs."""

    partition: str
    region: str
    account_id: str

    def instance_arn(self, instance_id: str) -> str:
        return f"arn:{self.partition}:ec2:{self.region}:{self.account_id}:instance/{instance_id}"

    def managed_policy_arn(self, policy_name: str) -> str:
        return f"arn:{self.partition}:iam::aws:policy/{policy_name}"


def resolve_aws_context(sts: Any, region: str) -> AwsContext:
    """Ask STS who we are.  The partition is read from the caller ARN."""
    identity = sts.get_caller_identity()
    partition = identity["Arn"].split(":")[1]
    return AwsContext(partition=partition, region=region, account_id=identity["Account"])
