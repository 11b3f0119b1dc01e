"""Workspace network resolution.

All workspaces live in one VPC/subnet pair, identified by tag and CIDR.  The
pair is looked up (or created) once at startup; volumes are created in the
subnet's availability zone so they can attach to workspace instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger


@dataclass(frozen=True)
class Network:
    vpc_id: str
    subnet_id: str
    availability_zone: str


def resolve_network(ec2: Any, *, vpc_name: str, vpc_cidr_block: str, subnet_cidr_block: str) -> Network:
    """Look up or create the workspace VPC and subnet."""
    vpc_id = _get_or_create_vpc(ec2, vpc_name, vpc_cidr_block)
    subnet = _get_or_create_subnet(ec2, vpc_id, subnet_cidr_block)
    logger.info("Workspace network: vpc={} subnet={} az={}", vpc_id, subnet["SubnetId"], subnet["AvailabilityZone"])
    return Network(vpc_id=vpc_id, subnet_id=subnet["SubnetId"], availability_zone=subnet["AvailabilityZone"])


def _get_or_create_vpc(ec2: Any, vpc_name: str, cidr_block: str) -> str:
    resp = ec2.describe_vpcs(
        Filters=[
            {"Name": "cidr-block", "Values": [cidr_block]},
            {"Name": "tag:Name", "Values": [vpc_name]},
        ]
    )
    if resp.get("Vpcs"):
        return resp["Vpcs"][0]["VpcId"]

    logger.info("Creating workspace VPC {} ({})", vpc_name, cidr_block)
    vpc = ec2.create_vpc(
        CidrBlock=cidr_block,
        TagSpecifications=[{"ResourceType": "vpc", "Tags": [{"Key": "Name", "Value": vpc_name}]}],
    )["Vpc"]
    ec2.get_waiter("vpc_available").wait(VpcIds=[vpc["VpcId"]])
    return vpc["VpcId"]


def _get_or_create_subnet(ec2: Any, vpc_id: str, cidr_block: str) -> dict[str, Any]:
    resp = ec2.describe_subnets(
        Filters=[
            {"Name": "vpc-id", "Values": [vpc_id]},
            {"Name": "cidr-block", "Values": [cidr_block]},
        ]
    )
    if resp.get("Subnets"):
        return resp["Subnets"][0]

    logger.info("Creating workspace subnet {} in {}", cidr_block, vpc_id)
    return ec2.create_subnet(VpcId=vpc_id, CidrBlock=cidr_block)["Subnet"]
