"""VPC listing and class-tag lookup."""

from typing import Any, Dict, List

from cloudclass.core.errors import ResourceNotFoundError
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import Vpc, tag_value


def marshal_vpc(vpc: Dict[str, Any], region: str) -> Vpc:
    return Vpc(
        name=tag_value(vpc.get("Tags"), "Name"),
        class_name=tag_value(vpc.get("Tags"), "Class"),
        vpc_id=vpc.get("VpcId", ""),
        state=vpc.get("State", ""),
        cidr_block=vpc.get("CidrBlock", ""),
        is_default=bool(vpc.get("IsDefault", False)),
        region=region,
    )


class VpcManager(RegionalResourceManager):
    """Lists VPCs and finds them by tag."""

    label = "VPCs"

    def describe_region(self, region: str) -> List[Vpc]:
        ec2 = self.client("ec2", region)
        return [
            marshal_vpc(vpc, region)
            for vpc in self.paginate(ec2, "describe_vpcs", "Vpcs")
        ]

    def get_by_tag(self, region: str, key: str, value: str) -> Vpc:
        """First VPC in region carrying tag key=value.

        Raises:
            ResourceNotFoundError: When no VPC carries the tag
        """
        ec2 = self.client("ec2", region)
        response = ec2.describe_vpcs(
            Filters=[{"Name": f"tag:{key}", "Values": [value]}]
        )
        vpcs = response.get("Vpcs", [])
        if not vpcs:
            raise ResourceNotFoundError(
                f"No VPC found with [{key}] of [{value}] in [{region}]!"
            )
        return marshal_vpc(vpcs[0], region)
