"""EC2 compute provisioning for workspaces.

Every resource belonging to a workspace (instance, volume, security group,
instance profile and role) is tagged or named with the workspace's
deterministic name, ``workspace-<owner>-<name>`` in lower case.  That name is
the only correlation between the record and its cloud resources.

All blocking operations (launch, volume create/resize/attach, terminate) wait
on boto3 waiters.  A waiter failure aborts the caller's operation; nothing is
retried here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, WaiterError
from loguru import logger

from dave.user_api.errors import InternalError
from dave.user_api.models.enums import CpuArchitecture
from dave.user_api.provisioning.network import Network

INSTANCE_TYPES: dict[CpuArchitecture, str] = {
    CpuArchitecture.ARM64: "t4g.medium",
    CpuArchitecture.X86_64: "t3.medium",
}

IMAGE_PARAMETER = "/aws/service/ami-amazon-linux-latest/al2023-ami-kernel-default-{arch}"
VOLUME_DEVICE = "/dev/sdb"
VOLUME_TYPE = "gp3"


def deterministic_name(owner: str, workspace_name: str) -> str:
    """Name shared by every cloud resource of a workspace."""
    return f"workspace-{owner}-{workspace_name}".lower()


def _name_tag(resource_type: str, name: str) -> dict[str, Any]:
    return {"ResourceType": resource_type, "Tags": [{"Key": "Name", "Value": name}]}


@dataclass(frozen=True)
class Instance:
    instance_id: str
    state: str


@dataclass(frozen=True)
class Volume:
    volume_id: str
    size: int


class ComputeProvisioner:
    """Creates, replaces and terminates workspace instances and their volumes."""

    def __init__(self, ec2: Any, ssm: Any, network: Network) -> None:
        self._ec2 = ec2
        self._ssm = ssm
        self._network = network

    @property
    def availability_zone(self) -> str:
        return self._network.availability_zone

    # -- Images ----------------------------------------------------------------

    def resolve_latest_image(self, architecture: CpuArchitecture) -> str:
        """Return the current Amazon Linux 2023 image id for the architecture."""
        parameter = IMAGE_PARAMETER.format(arch=architecture.value.lower())
        try:
            resp = self._ssm.get_parameter(Name=parameter)
        except (BotoCoreError, ClientError) as exc:
            logger.opt(exception=exc).error("Error resolving image parameter {}", parameter)
            raise InternalError from exc
        return resp["Parameter"]["Value"]

    # -- Security groups -------------------------------------------------------

    def ensure_security_group(self, name: str) -> str:
        """Look up the security group by name in the workspace VPC, creating it if absent."""
        resp = self._ec2.describe_security_groups(
            Filters=[
                {"Name": "group-name", "Values": [name]},
                {"Name": "vpc-id", "Values": [self._network.vpc_id]},
            ]
        )
        if resp.get("SecurityGroups"):
            return resp["SecurityGroups"][0]["GroupId"]

        logger.info("Creating security group {}", name)
        created = self._ec2.create_security_group(
            GroupName=name,
            Description=f"Workspace {name}",
            VpcId=self._network.vpc_id,
            TagSpecifications=[_name_tag("security-group", name)],
        )
        return created["GroupId"]

    # -- Instances -------------------------------------------------------------

    def launch(self, name: str, architecture: CpuArchitecture, security_group_id: str, user_data: str) -> Instance:
        """Start an instance and block until it is running.

        The instance runs with the instance profile called ``name``; the
        caller is responsible for creating it first.
        """
        image_id = self.resolve_latest_image(architecture)
        logger.info("Creating EC2 instance {} with image id {}", name, image_id)
        resp = self._ec2.run_instances(
            ImageId=image_id,
            InstanceType=INSTANCE_TYPES[architecture],
            MinCount=1,
            MaxCount=1,
            Monitoring={"Enabled": True},
            NetworkInterfaces=[
                {
                    "DeviceIndex": 0,
                    "SubnetId": self._network.subnet_id,
                    "Groups": [security_group_id],
                    "AssociatePublicIpAddress": True,
                }
            ],
            IamInstanceProfile={"Name": name},
            UserData=user_data,
            TagSpecifications=[_name_tag("instance", name)],
        )
        instance_id = resp["Instances"][0]["InstanceId"]

        try:
            self._ec2.get_waiter("instance_running").wait(InstanceIds=[instance_id])
        except WaiterError as exc:
            logger.opt(exception=exc).error("Error waiting for instance {} to run", instance_id)
            raise InternalError from exc

        logger.info("EC2 instance {} is running", instance_id)
        return Instance(instance_id=instance_id, state=self.describe_status(instance_id))

    def terminate_and_await(self, instance_id: str) -> None:
        logger.info("Terminating EC2 instance {}", instance_id)
        self._ec2.terminate_instances(InstanceIds=[instance_id])
        try:
            self._ec2.get_waiter("instance_terminated").wait(InstanceIds=[instance_id])
        except WaiterError as exc:
            logger.opt(exception=exc).error("Error waiting for instance {} to terminate", instance_id)
            raise InternalError from exc
        logger.info("EC2 instance {} terminated", instance_id)

    def describe_status(self, instance_id: str) -> str:
        """Return the raw EC2 state name of one instance."""
        resp = self._ec2.describe_instances(InstanceIds=[instance_id])
        for reservation in resp.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return instance["State"]["Name"]
        logger.error("DescribeInstances returned nothing for {}", instance_id)
        raise InternalError

    def describe_statuses(self, instance_ids: Iterable[str]) -> dict[str, str]:
        """Batch lookup of state names.  Unknown instances are absent from the result.

        Uses an ``instance-id`` filter rather than ``InstanceIds`` so that a
        vanished instance does not fail the whole batch.
        """
        ids = list(dict.fromkeys(instance_ids))
        if not ids:
            return {}
        states: dict[str, str] = {}
        paginator = self._ec2.get_paginator("describe_instances")
        for page in paginator.paginate(Filters=[{"Name": "instance-id", "Values": ids}]):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    states[instance["InstanceId"]] = instance["State"]["Name"]
        return states

    def retag(self, resource_ids: list[str], name: str) -> None:
        self._ec2.create_tags(Resources=resource_ids, Tags=[{"Key": "Name", "Value": name}])

    # -- Volumes ---------------------------------------------------------------

    def find_volume(self, tagged_name: str) -> Volume | None:
        resp = self._ec2.describe_volumes(Filters=[{"Name": "tag:Name", "Values": [tagged_name]}])
        volumes = resp.get("Volumes", [])
        if not volumes:
            return None
        return Volume(volume_id=volumes[0]["VolumeId"], size=volumes[0]["Size"])

    def provision_volume(self, size_gib: int, availability_zone: str, tagged_name: str) -> Volume:
        """Return the workspace volume, sized to ``size_gib``.

        An existing volume tagged ``tagged_name`` is reused and resized in
        place when its size differs.  EBS applies the resize online, so the
        volume may still be attached.  Otherwise a new gp3 volume is created
        and this blocks until it is available.
        """
        existing = self.find_volume(tagged_name)
        if existing is not None:
            if existing.size == size_gib:
                return existing
            logger.info("Resizing volume {} from {} to {} GiB", existing.volume_id, existing.size, size_gib)
            self._ec2.modify_volume(VolumeId=existing.volume_id, Size=size_gib, VolumeType=VOLUME_TYPE)
            return Volume(volume_id=existing.volume_id, size=size_gib)

        logger.info("Creating {} GiB volume {} in {}", size_gib, tagged_name, availability_zone)
        created = self._ec2.create_volume(
            AvailabilityZone=availability_zone,
            Size=size_gib,
            VolumeType=VOLUME_TYPE,
            TagSpecifications=[_name_tag("volume", tagged_name)],
        )
        logger.info("Waiting for volume {} to become available (may take a few minutes) ...", created["VolumeId"])
        self.await_volume_available(created["VolumeId"])
        return Volume(volume_id=created["VolumeId"], size=size_gib)

    def attach_volume(self, instance_id: str, volume_id: str) -> None:
        logger.info("Attaching volume {} to EC2 instance {}", volume_id, instance_id)
        self._ec2.attach_volume(VolumeId=volume_id, InstanceId=instance_id, Device=VOLUME_DEVICE)
        try:
            self._ec2.get_waiter("volume_in_use").wait(VolumeIds=[volume_id])
        except WaiterError as exc:
            logger.opt(exception=exc).error("Error waiting for volume {} to attach", volume_id)
            raise InternalError from exc

    def await_volume_available(self, volume_id: str) -> None:
        try:
            self._ec2.get_waiter("volume_available").wait(VolumeIds=[volume_id])
        except WaiterError as exc:
            logger.opt(exception=exc).error("Error waiting for volume {} to become available", volume_id)
            raise InternalError from exc
        logger.info("Volume {} is available", volume_id)
