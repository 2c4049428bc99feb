"""AWS resource managers.

One manager per resource type. Every manager lists its resources across
regions and prints them as a table; the mutable ones also create,
update or delete them behind a confirmation prompt.
"""

from .addresses import AddressManager
from .alarms import AlarmManager
from .autoscale_groups import AutoScaleGroupManager
from .images import ImageManager
from .instances import InstanceManager
from .keypairs import KeyPairManager
from .launch_configurations import LaunchConfigurationManager
from .scaling_policies import ScalingPolicyManager
from .security_groups import SecurityGroupManager
from .snapshots import SnapshotManager
from .subnets import SubnetManager
from .vpcs import VpcManager

__all__ = [
    "AddressManager",
    "AlarmManager",
    "AutoScaleGroupManager",
    "ImageManager",
    "InstanceManager",
    "KeyPairManager",
    "LaunchConfigurationManager",
    "ScalingPolicyManager",
    "SecurityGroupManager",
    "SnapshotManager",
    "SubnetManager",
    "VpcManager",
]
