"""Subnet listing, name resolution and class-tag lookup."""

from typing import Any, Dict, List, Sequence

from cloudclass.core.errors import ResourceNotFoundError
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import Subnet, tag_value
from cloudclass.resources.vpcs import VpcManager


def marshal_subnet(subnet: Dict[str, Any], region: str, vpc_names: Dict[str, str]) -> Subnet:
    vpc_id = subnet.get("VpcId", "")
    return Subnet(
        name=tag_value(subnet.get("Tags"), "Name"),
        class_name=tag_value(subnet.get("Tags"), "Class"),
        subnet_id=subnet.get("SubnetId", ""),
        vpc_id=vpc_id,
        vpc_name=vpc_names.get(vpc_id, ""),
        state=subnet.get("State", ""),
        availability_zone=subnet.get("AvailabilityZone", ""),
        cidr_block=subnet.get("CidrBlock", ""),
        default_for_az=bool(subnet.get("DefaultForAz", False)),
        region=region,
    )


def _split_ids(subnet_ids: str) -> List[str]:
    """Subnet IDs of a comma separated VPCZoneIdentifier."""
    return [s.strip() for s in subnet_ids.split(",") if s.strip()]


def subnet_name(subnets: Sequence[Subnet], subnet_ids: str) -> str:
    """Names of the subnets in a VPCZoneIdentifier, comma joined."""
    by_id = {s.subnet_id: s for s in subnets}
    return ", ".join(
        by_id[i].name for i in _split_ids(subnet_ids) if i in by_id and by_id[i].name
    )


def vpc_id_for(subnets: Sequence[Subnet], subnet_ids: str) -> str:
    """VPC of the first known subnet in a VPCZoneIdentifier."""
    by_id = {s.subnet_id: s for s in subnets}
    for i in _split_ids(subnet_ids):
        if i in by_id:
            return by_id[i].vpc_id
    return ""


def vpc_name_for(subnets: Sequence[Subnet], subnet_ids: str) -> str:
    by_id = {s.subnet_id: s for s in subnets}
    for i in _split_ids(subnet_ids):
        if i in by_id:
            return by_id[i].vpc_name
    return ""


class SubnetManager(RegionalResourceManager):
    """Lists subnets and finds them by tag."""

    label = "Subnets"

    def describe_region(self, region: str) -> List[Subnet]:
        ec2 = self.client("ec2", region)
        vpc_names = {
            vpc.vpc_id: vpc.name
            for vpc in self.peer(VpcManager).describe_region(region)
        }
        return [
            marshal_subnet(subnet, region, vpc_names)
            for subnet in self.paginate(ec2, "describe_subnets", "Subnets")
        ]

    def get_by_tag(self, region: str, vpc_id: str, key: str, value: str) -> Subnet:
        """First subnet of a VPC carrying tag key=value.

        Raises:
            ResourceNotFoundError: When no subnet carries the tag
        """
        ec2 = self.client("ec2", region)
        response = ec2.describe_subnets(
            Filters=[
                {"Name": "vpc-id", "Values": [vpc_id]},
                {"Name": f"tag:{key}", "Values": [value]},
            ]
        )
        subnets = response.get("Subnets", [])
        if not subnets:
            raise ResourceNotFoundError(
                f"No Subnet found with [{key}] of [{value}] in VPC [{vpc_id}]!"
            )
        return marshal_subnet(subnets[0], region, {})
