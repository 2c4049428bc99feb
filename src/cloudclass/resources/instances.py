"""EC2 instance listing and termination."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from cloudclass.core import terminal
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import Instance, parse_timestamp, tag_value


logger = logging.getLogger(__name__)


def marshal_instance(instance: Dict[str, Any], region: str) -> Instance:
    return Instance(
        name=tag_value(instance.get("Tags"), "Name"),
        class_name=tag_value(instance.get("Tags"), "Class"),
        instance_id=instance.get("InstanceId", ""),
        state=instance.get("State", {}).get("Name", ""),
        public_ip=instance.get("PublicIpAddress", ""),
        private_ip=instance.get("PrivateIpAddress", ""),
        instance_type=instance.get("InstanceType", ""),
        availability_zone=instance.get("Placement", {}).get("AvailabilityZone", ""),
        vpc_id=instance.get("VpcId", ""),
        subnet_id=instance.get("SubnetId", ""),
        launch_time=parse_timestamp(instance.get("LaunchTime")),
        region=region,
    )


def instance_name(instances: Sequence[Instance], instance_id: str) -> str:
    """Name tag of an instance, falling back to its ID."""
    for instance in instances:
        if instance.instance_id == instance_id:
            return instance.name or instance_id
    return instance_id


class InstanceManager(RegionalResourceManager):
    """Lists and terminates EC2 instances."""

    label = "Instances"

    def describe_region(self, region: str) -> List[Instance]:
        ec2 = self.client("ec2", region)
        return [
            marshal_instance(instance, region)
            for reservation in self.paginate(ec2, "describe_instances", "Reservations")
            for instance in reservation.get("Instances", [])
        ]

    def terminate(
        self,
        search: str,
        region: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[Instance]:
        """Terminate every instance matching search.

        Returns:
            The instances terminated
        """
        instances = self.select_for_change(
            search,
            region,
            "Are you sure you want to terminate these Instances?",
            dry_run,
            force,
        )

        for instance in instances:
            ec2 = self.client("ec2", instance.region)
            self.call_ec2(
                ec2.terminate_instances, dry_run, InstanceIds=[instance.instance_id]
            )
            if not dry_run:
                logger.info("Terminated instance %s in %s", instance.instance_id, instance.region)
                terminal.delta(
                    f"Terminated Instance [{instance.instance_id}] named [{instance.name}] in [{instance.region}]!"
                )

        terminal.information("Done!")
        return instances
