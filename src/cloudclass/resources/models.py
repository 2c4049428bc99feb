"""Flat records of remote AWS state.

Records are point-in-time snapshots built from SDK responses. Fields
with a ``table`` label appear as table columns; every ``str`` field
takes part in search filtering.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def column(label: str = "", default: Any = ""):
    """Declare a record field shown under label in tables."""
    metadata = {"table": label}
    if isinstance(default, list):
        return field(default_factory=list, metadata=metadata)
    return field(default=default, metadata=metadata)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Datetime from an SDK timestamp (datetime or ISO 8601 string)."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def tag_value(tags: Optional[List[Dict[str, str]]], key: str) -> str:
    """Value of a tag in an SDK tag list, empty when absent."""
    for tag in tags or []:
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""


@dataclass
class Address:
    allocation_id: str = column("Allocation ID")
    public_ip: str = column("Public IP")
    private_ip: str = column("Private IP")
    domain: str = column("Domain")
    instance_id: str = column("Instance ID")
    status: str = column("Status")
    attachment: str = column("Attachment")
    network_interface_id: str = column("Network Interface ID")
    network_interface_owner_id: str = column("Network Interface Owner")
    region: str = column("Region")


@dataclass
class Alarm:
    name: str = column("Name")
    arn: str = column()
    description: str = column("Description")
    state: str = column("State")
    trigger: str = column("Trigger")
    period: str = column("Period")
    eval_periods: str = column("Eval Periods")
    action_arns: List[str] = column(default=[])
    action_names: str = column("Actions")
    dimensions: str = column("Dimensions")
    namespace: str = column("Namespace")
    region: str = column("Region")


@dataclass
class AutoScaleGroup:
    name: str = column("Name")
    class_name: str = column("Class")
    health_check_type: str = column("Health Check Type")
    health_check_grace_period: int = column("Health Check Grace Period", 0)
    launch_config: str = column("Launch Configuration")
    load_balancers: List[str] = column("Load Balancers", [])
    instance_count: int = column("Instance Count", 0)
    desired_capacity: int = column("Desired Capacity", 0)
    min_size: int = column("Min Size", 0)
    max_size: int = column("Max Size", 0)
    default_cooldown: int = column("Default Cooldown", 0)
    availability_zones: List[str] = column("Availability Zones", [])
    subnet_id: str = column("Subnet ID")
    subnet_name: str = column("Subnet Name")
    vpc_id: str = column("VPC ID")
    vpc_name: str = column("VPC Name")
    region: str = column("Region")


@dataclass
class ScalingActivity:
    activity_id: str = column()
    auto_scaling_group_name: str = column("AutoScaling Group")
    cause: str = column()
    description: str = column("Description")
    details: str = column()
    status_code: str = column("Status")
    progress: int = column("Progress", 0)
    start_time: Optional[datetime] = column("Start Time", None)
    end_time: Optional[datetime] = column("End Time", None)
    region: str = column("Region")


@dataclass
class ScalingPolicy:
    name: str = column("Name")
    arn: str = column()
    auto_scaling_group_name: str = column("AutoScaling Group")
    adjustment_type: str = column("Adjustment Type")
    scaling_adjustment: int = column("Adjustment", 0)
    cooldown: int = column("Cooldown", 0)
    alarm_names: str = column("Alarms")
    region: str = column("Region")


@dataclass
class LaunchConfig:
    name: str = column("Name")
    image_name: str = column("Image Name")
    image_id: str = column("Image ID")
    instance_type: str = column("Instance Type")
    key_name: str = column("Key Name")
    security_groups: str = column("Security Groups")
    creation_time: Optional[datetime] = column("Created", None)
    region: str = column("Region")
    ebs_optimized: bool = column("EBS Optimized", False)
    snapshot_ids: List[str] = column("Snapshot IDs", [])


@dataclass
class Image:
    name: str = column("Name")
    class_name: str = column("Class")
    image_id: str = column("Image ID")
    state: str = column("State")
    root_device_type: str = column("Root Device Type")
    snapshot_ids: List[str] = column("Snapshot IDs", [])
    creation_time: Optional[datetime] = column("Created", None)
    region: str = column("Region")


@dataclass
class Instance:
    name: str = column("Name")
    class_name: str = column("Class")
    instance_id: str = column("Instance ID")
    state: str = column("State")
    public_ip: str = column("Public IP")
    private_ip: str = column("Private IP")
    instance_type: str = column("Instance Type")
    availability_zone: str = column("Availability Zone")
    vpc_id: str = column("VPC ID")
    subnet_id: str = column("Subnet ID")
    launch_time: Optional[datetime] = column("Launched", None)
    region: str = column("Region")


@dataclass
class SecurityGroup:
    name: str = column("Name")
    class_name: str = column("Class")
    group_id: str = column("Group ID")
    description: str = column("Description")
    vpc_id: str = column("VPC ID")
    region: str = column("Region")


@dataclass
class Subnet:
    name: str = column("Name")
    class_name: str = column("Class")
    subnet_id: str = column("Subnet ID")
    vpc_id: str = column("VPC ID")
    vpc_name: str = column("VPC Name")
    state: str = column("State")
    availability_zone: str = column("Availability Zone")
    cidr_block: str = column("CIDR Block")
    default_for_az: bool = column("Default", False)
    region: str = column("Region")


@dataclass
class Vpc:
    name: str = column("Name")
    class_name: str = column("Class")
    vpc_id: str = column("VPC ID")
    state: str = column("State")
    cidr_block: str = column("CIDR Block")
    is_default: bool = column("Default", False)
    region: str = column("Region")


@dataclass
class Snapshot:
    name: str = column("Name")
    class_name: str = column("Class")
    snapshot_id: str = column("Snapshot ID")
    volume_id: str = column("Volume ID")
    state: str = column("State")
    progress: str = column("Progress")
    volume_size: int = column("Size", 0)
    creation_time: Optional[datetime] = column("Created", None)
    region: str = column("Region")


@dataclass
class KeyPair:
    key_name: str = column("Key Name")
    fingerprint: str = column("Fingerprint")
    region: str = column("Region")
