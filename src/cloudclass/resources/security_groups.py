"""Security group listing, name resolution and class-tag lookup."""

from typing import Any, Dict, List, Optional, Sequence

from cloudclass.core.errors import ResourceNotFoundError
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import SecurityGroup, tag_value


def marshal_security_group(group: Dict[str, Any], region: str) -> SecurityGroup:
    return SecurityGroup(
        name=group.get("GroupName", ""),
        class_name=tag_value(group.get("Tags"), "Class"),
        group_id=group.get("GroupId", ""),
        description=group.get("Description", ""),
        vpc_id=group.get("VpcId", ""),
        region=region,
    )


def names_for(groups: Sequence[SecurityGroup], group_ids: Sequence[str]) -> List[str]:
    """Names of security groups by ID; unknown IDs are kept as they are."""
    by_id = {g.group_id: g.name for g in groups}
    return [by_id.get(group_id, group_id) for group_id in group_ids]


class SecurityGroupManager(RegionalResourceManager):
    """Lists security groups and finds them by tag."""

    label = "Security Groups"

    def describe_region(self, region: str) -> List[SecurityGroup]:
        ec2 = self.client("ec2", region)
        return [
            marshal_security_group(group, region)
            for group in self.paginate(ec2, "describe_security_groups", "SecurityGroups")
        ]

    def get_by_tag_multi(
        self,
        region: str,
        key: str,
        values: Sequence[str],
        vpc_id: Optional[str] = None,
    ) -> List[SecurityGroup]:
        """Security groups carrying each of the tag values, in order.

        Args:
            region: Region to search
            key: Tag key, usually Class
            values: One tag value per wanted group
            vpc_id: Limit the search to one VPC

        Raises:
            ResourceNotFoundError: When a value matches no group
        """
        if not values:
            return []

        filters = [{"Name": f"tag:{key}", "Values": list(values)}]
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})

        ec2 = self.client("ec2", region)
        response = ec2.describe_security_groups(Filters=filters)
        groups = [
            marshal_security_group(group, region)
            for group in response.get("SecurityGroups", [])
        ]

        by_class = {}
        for group in groups:
            by_class.setdefault(group.class_name, group)

        missing = [v for v in values if v not in by_class]
        if missing:
            raise ResourceNotFoundError(
                f"No Security Group found with [{key}] of [{', '.join(missing)}] in [{region}]!"
            )

        return [by_class[v] for v in values]
