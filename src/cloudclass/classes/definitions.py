"""Configuration class definitions.

A class is a named record of desired parameters for one kind of AWS
resource. Every field names its SimpleDB attribute (``attr``) and its
JSON key (``json``) in metadata so the store can marshal records
field-by-field.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from cloudclass.core.errors import CloudClassError


class ClassError(CloudClassError):
    """Base exception for class definition problems."""
    pass


class UnknownClassTypeError(ClassError):
    """Raised when a class type key is not registered."""
    pass


def class_field(attr: str, json_key: str, default: Any = None, label: str = ""):
    """Declare a class field with its store and JSON names."""
    metadata = {"attr": attr, "json": json_key, "label": label}
    if isinstance(default, list):
        return field(default_factory=list, metadata=metadata)
    return field(default=default, metadata=metadata)


@dataclass
class InstanceClass:
    """Desired parameters of an EC2 instance."""

    instance_type: str = class_field("InstanceType", "instanceType", "", "Instance Type")
    security_groups: List[str] = class_field("SecurityGroups", "securityGroups", [], "Security Groups")
    ebs_volumes: List[str] = class_field("EBSVolumes", "ebsVolumes", [], "EBS Volumes")
    vpc: str = class_field("Vpc", "vpc", "", "VPC")
    subnet: str = class_field("Subnet", "subnet", "", "Subnet")
    public_ip_address: bool = class_field("PublicIPAddress", "publicIpAddress", False, "Public IP Address")
    ami: str = class_field("AMI", "ami", "", "AMI")
    key_name: str = class_field("KeyName", "keyName", "", "Key Name")
    ebs_optimized: bool = class_field("EbsOptimized", "ebsOptimized", False, "EBS Optimized")
    monitoring: bool = class_field("Monitoring", "monitoring", False, "Monitoring")
    shutdown_behavior: str = class_field("ShutdownBehavior", "shutdownBehavior", "", "Shutdown Behaviour")
    iam_instance_profile: str = class_field("IAMInstanceProfile", "iamInstanceProfile", "", "IAM Instance Profile")
    user_data: str = class_field("UserData", "userData", "")


@dataclass
class LaunchConfigurationClass:
    """Versioned launch configuration built from an instance class."""

    version: int = class_field("Version", "version", 0, "Version")
    instance_class: str = class_field("InstanceClass", "instanceClass", "", "Instance Class")
    retain: int = class_field("Retain", "retain", 5, "Retain")
    regions: List[str] = class_field("Regions", "regions", [], "Regions")

    @staticmethod
    def name_for(class_name: str, version: int) -> str:
        """Launch configuration name of a class version."""
        return f"{class_name}-v{version}"


@dataclass
class AutoscaleGroupClass:
    """Desired parameters of an auto-scaling group."""

    launch_configuration_class: str = class_field("LaunchConfigurationClass", "launchConfigurationClass", "", "Launch Configuration Class")
    availability_zones: List[str] = class_field("AvailabilityZones", "availabilityZones", [], "Availability Zones")
    desired_capacity: int = class_field("DesiredCapacity", "desiredCapacity", 0, "Desired Capacity")
    min_size: int = class_field("MinSize", "minSize", 0, "Min Size")
    max_size: int = class_field("MaxSize", "maxSize", 0, "Max Size")
    default_cooldown: int = class_field("DefaultCooldown", "defaultCooldown", 0, "Default Cooldown")
    subnet_class: str = class_field("SubnetClass", "subnetClass", "", "Subnet Class")
    health_check_type: str = class_field("HealthCheckType", "healthCheckType", "EC2", "Health Check Type")
    health_check_grace_period: int = class_field("HealthCheckGracePeriod", "healthCheckGracePeriod", 0, "Health Check Grace Period")
    termination_policies: List[str] = class_field("TerminationPolicies", "terminationPolicies", [], "Termination Policies")
    load_balancer_names: List[str] = class_field("LoadBalancerNames", "loadBalancerNames", [], "Load Balancer Names")
    alarms: List[str] = class_field("Alarms", "alarms", [], "Alarms")


@dataclass
class AlarmClass:
    """Desired parameters of a CloudWatch metric alarm."""

    alarm_description: str = class_field("AlarmDescription", "alarmDescription", "", "Description")
    alarm_actions: List[str] = class_field("AlarmActions", "alarmActions", [], "Alarm Actions")
    ok_actions: List[str] = class_field("OKActions", "okActions", [], "OK Actions")
    insufficient_data_actions: List[str] = class_field("InsufficientDataActions", "insufficientDataActions", [], "Insufficient Data Actions")
    metric_name: str = class_field("MetricName", "metricName", "", "Metric Name")
    namespace: str = class_field("Namespace", "namespace", "", "Namespace")
    statistic: str = class_field("Statistic", "statistic", "Average", "Statistic")
    period: int = class_field("Period", "period", 300, "Period")
    evaluation_periods: int = class_field("EvaluationPeriods", "evaluationPeriods", 1, "Evaluation Periods")
    threshold: float = class_field("Threshold", "threshold", 0.0, "Threshold")
    comparison_operator: str = class_field("ComparisonOperator", "comparisonOperator", "", "Comparison Operator")
    actions_enabled: bool = class_field("ActionsEnabled", "actionsEnabled", True, "Actions Enabled")
    unit: str = class_field("Unit", "unit", "", "Unit")


@dataclass
class ScalingPolicyClass:
    """Desired parameters of a simple scaling policy."""

    scaling_adjustment: int = class_field("ScalingAdjustment", "scalingAdjustment", 0, "Scaling Adjustment")
    adjustment_type: str = class_field("AdjustmentType", "adjustmentType", "ChangeInCapacity", "Adjustment Type")
    cooldown: int = class_field("Cooldown", "cooldown", 300, "Cooldown")


@dataclass
class ImageClass:
    """Retention and propagation of machine images."""

    propagate: bool = class_field("Propagate", "propagate", False, "Propagate")
    propagate_regions: List[str] = class_field("PropagateRegions", "propagateRegions", [], "Propagate Regions")
    retain: int = class_field("Retain", "retain", 5, "Retain")
    instance_id: str = class_field("InstanceId", "instanceId", "", "Instance ID")


@dataclass
class VolumeClass:
    """EBS volume attached through launch configurations."""

    device_name: str = class_field("DeviceName", "deviceName", "", "Device Name")
    volume_size: int = class_field("VolumeSize", "volumeSize", 0, "Volume Size")
    delete_on_termination: bool = class_field("DeleteOnTermination", "deleteOnTermination", True, "Delete On Termination")
    snapshot: str = class_field("Snapshot", "snapshot", "", "Snapshot")
    volume_type: str = class_field("VolumeType", "volumeType", "gp2", "Volume Type")
    iops: int = class_field("Iops", "iops", 0, "IOPS")


CLASS_TYPES: Dict[str, Type] = {
    "instances": InstanceClass,
    "launchconfigurations": LaunchConfigurationClass,
    "autoscalegroups": AutoscaleGroupClass,
    "alarms": AlarmClass,
    "scalingpolicies": ScalingPolicyClass,
    "images": ImageClass,
    "volumes": VolumeClass,
}


def class_type(type_key: str) -> Type:
    """Look up the dataclass registered for a class type.

    Raises:
        UnknownClassTypeError: When the type key is not registered
    """
    try:
        return CLASS_TYPES[type_key]
    except KeyError:
        raise UnknownClassTypeError(
            f"Unknown class type [{type_key}]. "
            f"Valid types: {', '.join(sorted(CLASS_TYPES))}"
        )


def describe_class(cls: Any) -> Dict[str, Any]:
    """Labelled field values of a class for display."""
    return {
        f.metadata.get("label") or f.name: getattr(cls, f.name)
        for f in dataclasses.fields(cls)
    }


def _default_instances() -> Dict[str, InstanceClass]:
    bootstrap = (
        "#cloud-config\n\nruncmd:\n"
        "  - su - ubuntu -c \"cloudclass --version\"\n"
    )
    return {
        "base": InstanceClass(
            instance_type="t2.nano",
            security_groups=["dev"],
            ebs_volumes=[],
            vpc="cloudclass",
            subnet="private",
            key_name="cloudclass",
            shutdown_behavior="stop",
            iam_instance_profile="cloudclass",
            user_data=bootstrap,
        ),
        "dev": InstanceClass(
            instance_type="r3.large",
            security_groups=["dev"],
            ebs_volumes=["git-standard", "mysql-data-standard"],
            vpc="cloudclass",
            subnet="private",
            ami="base",
            key_name="cloudclass",
            shutdown_behavior="stop",
            iam_instance_profile="cloudclass",
            user_data=bootstrap,
        ),
        "prod": InstanceClass(
            instance_type="r3.large",
            security_groups=["dev", "prod"],
            vpc="cloudclass",
            subnet="private",
            ami="base",
            key_name="cloudclass",
            shutdown_behavior="stop",
            iam_instance_profile="cloudclass",
            user_data=bootstrap,
        ),
    }


def _default_launch_configurations() -> Dict[str, LaunchConfigurationClass]:
    return {
        "prod": LaunchConfigurationClass(
            version=0,
            instance_class="prod",
            retain=5,
            regions=["us-west-2", "us-east-1", "eu-west-1"],
        ),
    }


def _default_autoscale_groups() -> Dict[str, AutoscaleGroupClass]:
    return {
        "prod": AutoscaleGroupClass(
            launch_configuration_class="prod",
            availability_zones=["us-west-2a", "us-west-2b", "us-west-2c"],
            desired_capacity=2,
            min_size=1,
            max_size=4,
            default_cooldown=300,
            subnet_class="private",
            health_check_type="EC2",
            health_check_grace_period=300,
            termination_policies=["OldestLaunchConfiguration"],
            alarms=["cpuHigh", "cpuLow"],
        ),
    }


def _default_alarms() -> Dict[str, AlarmClass]:
    return {
        "cpuHigh": AlarmClass(
            alarm_description="Scale up when average CPU is high",
            alarm_actions=["scaleUp"],
            metric_name="CPUUtilization",
            namespace="AWS/EC2",
            statistic="Average",
            period=300,
            evaluation_periods=2,
            threshold=75.0,
            comparison_operator="GreaterThanOrEqualToThreshold",
            unit="Percent",
        ),
        "cpuLow": AlarmClass(
            alarm_description="Scale down when average CPU is low",
            alarm_actions=["scaleDown"],
            metric_name="CPUUtilization",
            namespace="AWS/EC2",
            statistic="Average",
            period=300,
            evaluation_periods=4,
            threshold=25.0,
            comparison_operator="LessThanThreshold",
            unit="Percent",
        ),
    }


def _default_scaling_policies() -> Dict[str, ScalingPolicyClass]:
    return {
        "scaleUp": ScalingPolicyClass(scaling_adjustment=1, cooldown=300),
        "scaleDown": ScalingPolicyClass(scaling_adjustment=-1, cooldown=600),
    }


def _default_images() -> Dict[str, ImageClass]:
    return {
        "base": ImageClass(
            propagate=True,
            retain=5,
            propagate_regions=["us-west-2", "us-east-1", "eu-west-1"],
        ),
    }


def _default_volumes() -> Dict[str, VolumeClass]:
    return {
        "git-standard": VolumeClass(
            device_name="/dev/xvdf",
            volume_size=30,
            delete_on_termination=True,
            snapshot="git",
            volume_type="standard",
        ),
        "mysql-data-standard": VolumeClass(
            device_name="/dev/xvdg",
            volume_size=100,
            delete_on_termination=True,
            snapshot="mysql-data",
            volume_type="standard",
        ),
    }


_DEFAULTS = {
    "instances": _default_instances,
    "launchconfigurations": _default_launch_configurations,
    "autoscalegroups": _default_autoscale_groups,
    "alarms": _default_alarms,
    "scalingpolicies": _default_scaling_policies,
    "images": _default_images,
    "volumes": _default_volumes,
}


def default_classes(type_key: str) -> Dict[str, Any]:
    """Built-in seed classes for a class type.

    Raises:
        UnknownClassTypeError: When the type key is not registered
    """
    class_type(type_key)
    return _DEFAULTS[type_key]()


def find_field(cls_type: Type, attr: str) -> Optional[dataclasses.Field]:
    """Field of a class type stored under a SimpleDB attribute name."""
    for f in dataclasses.fields(cls_type):
        if f.metadata.get("attr") == attr:
            return f
    return None
