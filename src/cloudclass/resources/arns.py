"""ARN parsing.

Alarms and scaling policies reference each other by ARN; the readable
names are read straight out of the ARN instead of calling AWS again.
"""

from dataclasses import dataclass

from cloudclass.core.errors import CloudClassError


class ArnParseError(CloudClassError):
    """Raised when a string is not a usable ARN."""
    pass


@dataclass
class Arn:
    arn: str = ""
    partition: str = ""
    service: str = ""
    region: str = ""
    account_id: str = ""
    resource_type: str = ""
    resource: str = ""
    policy_id: str = ""
    policy_name: str = ""
    group_id: str = ""
    auto_scaling_group_name: str = ""


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.startswith(prefix) else value


def parse_arn(text: str) -> Arn:
    """Split an ARN into its parts.

    Autoscaling ARNs also yield policy and group names, e.g.
    ``arn:aws:autoscaling:us-east-1:123:scalingPolicy:<id>:
    autoScalingGroupName/<group>:policyName/<policy>``.

    Raises:
        ArnParseError: When the text has fewer than six parts
    """
    parts = text.split(":")
    if len(parts) < 6:
        raise ArnParseError(f"Error parsing ARN string [{text}]!")

    arn = Arn(
        arn=parts[0],
        partition=parts[1],
        service=parts[2],
        region=parts[3],
        account_id=parts[4],
    )

    if arn.service == "autoscaling":
        arn.resource_type = parts[5]
        if arn.resource_type == "scalingPolicy" and len(parts) >= 9:
            arn.policy_id = parts[6]
            arn.auto_scaling_group_name = _strip_prefix(parts[7], "autoScalingGroupName/")
            arn.policy_name = _strip_prefix(parts[8], "policyName/")
        elif arn.resource_type == "autoScalingGroup" and len(parts) >= 8:
            arn.group_id = parts[6]
            arn.auto_scaling_group_name = _strip_prefix(parts[7], "autoScalingGroupName/")
    elif len(parts) == 6:
        resource = parts[5]
        if "/" in resource:
            arn.resource_type, arn.resource = resource.split("/", 1)
        else:
            arn.resource = resource
    else:
        arn.resource_type = parts[5]
        arn.resource = ":".join(parts[6:])

    return arn
