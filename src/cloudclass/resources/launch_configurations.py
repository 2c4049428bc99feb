"""Launch configuration listing, versioned creation and rotation.

Launch configurations of a class are named ``<class>-v<N>``. Each
create bumps the class version past any name already taken, builds the
configuration in every class region from the instance class, then
rotates old versions away. A version still used by an auto-scaling
group is never rotated.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Set

from cloudclass.classes.store import next_launch_configuration_version
from cloudclass.core import terminal
from cloudclass.core.errors import RotationError, aws_error_message
from cloudclass.core.fanout import fan_out
from cloudclass.resources.base import RegionalResourceManager, plan_rotation
from cloudclass.resources.images import ImageManager, image_name
from cloudclass.resources.keypairs import KeyPairManager
from cloudclass.resources.models import Image, LaunchConfig, SecurityGroup, parse_timestamp
from cloudclass.resources.security_groups import SecurityGroupManager, names_for
from cloudclass.resources.snapshots import SnapshotManager
from cloudclass.resources.subnets import SubnetManager
from cloudclass.resources.vpcs import VpcManager


logger = logging.getLogger(__name__)

__all__ = [
    "LaunchConfigurationManager",
    "class_pattern",
    "locked_image_ids",
    "locked_snapshot_ids",
    "marshal_launch_config",
    "plan_rotation",
]


def class_pattern(class_name: str) -> "re.Pattern":
    """Pattern matching every launch configuration name of a class."""
    return re.compile(rf"^{re.escape(class_name)}-v\d+$")


def marshal_launch_config(
    config: Dict[str, Any],
    region: str,
    groups: Sequence[SecurityGroup] = (),
    images: Sequence[Image] = (),
) -> LaunchConfig:
    image_id = config.get("ImageId", "")
    return LaunchConfig(
        name=config.get("LaunchConfigurationName", ""),
        image_id=image_id,
        image_name=image_name(images, image_id),
        instance_type=config.get("InstanceType", ""),
        key_name=config.get("KeyName", ""),
        security_groups=", ".join(sorted(names_for(groups, config.get("SecurityGroups", [])))),
        creation_time=parse_timestamp(config.get("CreatedTime")),
        region=region,
        ebs_optimized=bool(config.get("EbsOptimized", False)),
        snapshot_ids=[
            mapping["Ebs"]["SnapshotId"]
            for mapping in config.get("BlockDeviceMappings", [])
            if mapping.get("Ebs", {}).get("SnapshotId")
        ],
    )


def locked_image_ids(configs: Sequence[LaunchConfig]) -> Set[str]:
    """Image IDs referenced by any launch configuration."""
    return {c.image_id for c in configs if c.image_id}


def locked_snapshot_ids(configs: Sequence[LaunchConfig]) -> Set[str]:
    """Snapshot IDs referenced by any launch configuration."""
    return {snapshot for c in configs for snapshot in c.snapshot_ids}


class LaunchConfigurationManager(RegionalResourceManager):
    """Lists, creates, rotates and deletes launch configurations."""

    label = "Launch Configurations"

    def describe_region(self, region: str) -> List[LaunchConfig]:
        autoscaling = self.client("autoscaling", region)
        configs = self.paginate(
            autoscaling, "describe_launch_configurations", "LaunchConfigurations"
        )
        if not configs:
            return []

        groups = self.peer(SecurityGroupManager).describe_region(region)
        images = self.peer(ImageManager).describe_region(region)
        return [marshal_launch_config(c, region, groups, images) for c in configs]

    def get_by_name(self, region: str, name: str) -> List[LaunchConfig]:
        """Launch configurations called name in region; empty when absent."""
        autoscaling = self.client("autoscaling", region)
        response = autoscaling.describe_launch_configurations(
            LaunchConfigurationNames=[name]
        )
        return [
            marshal_launch_config(c, region)
            for c in response.get("LaunchConfigurations", [])
        ]

    def exists(self, region: str, name: str) -> bool:
        return bool(self.get_by_name(region, name))

    def name_for(self, region: str, class_name: str, version: int) -> str:
        """Name of a class version when it exists in region, else empty."""
        name = f"{class_name}-v{version}"
        return name if self.exists(region, name) else ""

    def list_class(self, region: str, class_name: str) -> List[LaunchConfig]:
        """Every launch configuration of a class in region."""
        pattern = class_pattern(class_name)
        return [c for c in self.describe_region(region) if pattern.match(c.name)]

    def _block_devices(self, region: str, volumes: Dict[str, Any]) -> List[Dict[str, Any]]:
        mappings = []
        for volume_name, volume in volumes.items():
            ebs: Dict[str, Any] = {
                "DeleteOnTermination": volume.delete_on_termination,
                "VolumeSize": volume.volume_size,
                "VolumeType": volume.volume_type,
            }
            if volume.snapshot:
                snapshot = self.peer(SnapshotManager).get_latest_by_tag(
                    region, "Class", volume.snapshot
                )
                terminal.information(
                    f"Found Snapshot [{snapshot.snapshot_id}] with class "
                    f"[{snapshot.class_name}] for Volume [{volume_name}]"
                )
                ebs["SnapshotId"] = snapshot.snapshot_id
            if volume.volume_type == "io1":
                ebs["Iops"] = volume.iops
            mappings.append({"DeviceName": volume.device_name, "Ebs": ebs})
        return mappings

    def _security_group_ids(self, region: str, name: str, instance_cfg: Any) -> List[str]:
        if instance_cfg.vpc and instance_cfg.subnet:
            vpc = self.peer(VpcManager).get_by_tag(region, "Class", instance_cfg.vpc)
            terminal.information(f"Found VPC [{vpc.vpc_id}] in Region [{region}]")

            subnet = self.peer(SubnetManager).get_by_tag(
                region, vpc.vpc_id, "Class", instance_cfg.subnet
            )
            terminal.information(f"Found Subnet [{subnet.subnet_id}] in VPC [{subnet.vpc_id}]")

            groups = self.peer(SecurityGroupManager).get_by_tag_multi(
                region, "Class", instance_cfg.security_groups, vpc.vpc_id
            )
        else:
            terminal.information(
                f"No VPC and/or Subnet specified for Launch Configuration [{name}]"
            )
            groups = self.peer(SecurityGroupManager).get_by_tag_multi(
                region, "Class", instance_cfg.security_groups
            )

        for group in groups:
            terminal.information(
                f"Found Security Group [{group.group_id}] with name [{group.name}]"
            )
        return [group.group_id for group in groups]

    def build_params(
        self,
        region: str,
        name: str,
        instance_cfg: Any,
        volumes: Dict[str, Any],
    ) -> Dict[str, Any]:
        """CreateLaunchConfiguration parameters for one region.

        Raises:
            ResourceNotFoundError: When an image, snapshot, key pair,
                VPC, subnet or security group cannot be resolved
        """
        params: Dict[str, Any] = {
            "LaunchConfigurationName": name,
            "InstanceType": instance_cfg.instance_type,
            "InstanceMonitoring": {"Enabled": instance_cfg.monitoring},
            "AssociatePublicIpAddress": instance_cfg.public_ip_address,
        }
        if instance_cfg.user_data:
            params["UserData"] = instance_cfg.user_data
        if instance_cfg.iam_instance_profile:
            params["IamInstanceProfile"] = instance_cfg.iam_instance_profile
        if instance_cfg.ebs_optimized:
            terminal.information("Launching as EBS Optimized")
            params["EbsOptimized"] = True

        block_devices = self._block_devices(region, volumes)
        if block_devices:
            params["BlockDeviceMappings"] = block_devices

        image = self.peer(ImageManager).get_latest_by_tag(region, "Class", instance_cfg.ami)
        terminal.information(
            f"Found AMI [{image.image_id}] with class [{image.class_name}] in [{region}]"
        )
        params["ImageId"] = image.image_id

        if instance_cfg.key_name:
            key_pair = self.peer(KeyPairManager).get_by_name(region, instance_cfg.key_name)
            terminal.information(f"Found KeyPair [{key_pair.key_name}] in [{region}]")
            params["KeyName"] = key_pair.key_name

        group_ids = self._security_group_ids(region, name, instance_cfg)
        if group_ids:
            params["SecurityGroups"] = group_ids

        return params

    def create(self, class_name: str, dry_run: bool = False) -> str:
        """Create the next version of a launch configuration class.

        The new version is stored only after every class region
        succeeds, and never on a dry run.

        Args:
            class_name: Launch configuration class to build
            dry_run: Print each region's request instead of sending it

        Returns:
            Name of the new launch configuration

        Raises:
            InvalidRegionError: When a class region is not valid
            ResourceNotFoundError: When a dependency cannot be resolved
            AwsApiError: When AWS rejects the launch configuration
            RotationError: When rotating old versions fails
        """
        self.announce_dry_run(dry_run)

        cfg = self.store.load("launchconfigurations", class_name)
        terminal.information(f"Found Launch Configuration class configuration for [{class_name}]")

        instance_cfg = self.store.load("instances", cfg.instance_class)
        terminal.information(f"Found Instance class configuration for [{cfg.instance_class}]")

        volumes = {}
        for volume_name in instance_cfg.ebs_volumes:
            volumes[volume_name] = self.store.load("volumes", volume_name)
            terminal.information(f"Found Volume Class Configuration for [{volume_name}]")

        terminal.information(f"Previous version of launch configuration is [{cfg.version}]")
        version = next_launch_configuration_version(class_name, cfg, self.exists)
        name = cfg.name_for(class_name, version)
        terminal.information(f"New version of launch configuration is [{version}]")

        for region in cfg.regions:
            self.regions.require_region(region)
            params = self.build_params(region, name, instance_cfg, volumes)

            if dry_run:
                terminal.print_params(params)
                continue

            autoscaling = self.client("autoscaling", region)
            self.call(autoscaling.create_launch_configuration, **params)
            logger.info("Created launch configuration %s in %s", name, region)
            terminal.delta(f"Created Launch Configuration [{name}] in [{region}]!")

        if not dry_run:
            cfg.version = version
            self.store.save("launchconfigurations", class_name, cfg)

        if cfg.retain >= 1:
            self.rotate(class_name, cfg, dry_run)

        return name

    def _delete_one(self, config: LaunchConfig, dry_run: bool) -> None:
        if dry_run:
            terminal.notice(
                f"Would delete Launch Configuration [{config.name}] in [{config.region}]"
            )
            return

        autoscaling = self.client("autoscaling", config.region)
        self.call(
            autoscaling.delete_launch_configuration,
            LaunchConfigurationName=config.name,
        )
        logger.info("Deleted launch configuration %s in %s", config.name, config.region)
        terminal.delta(
            f"Deleted Launch Configuration [{config.name}] in [{config.region}]!"
        )

    def rotate(self, class_name: str, cfg: Any = None, dry_run: bool = False) -> List[LaunchConfig]:
        """Delete old versions of a class beyond its retain count.

        Returns:
            The launch configurations rotated away

        Raises:
            RotationError: When the group read or any region fails
        """
        from cloudclass.resources.autoscale_groups import (
            AutoScaleGroupManager,
            locked_launch_configurations,
        )

        if cfg is None:
            cfg = self.store.load("launchconfigurations", class_name)

        groups, errors = self.peer(AutoScaleGroupManager).list()
        if errors:
            raise RotationError(
                f"Error gathering AutoScaling Groups to rotate [{class_name}] Launch Configurations!"
            )
        locked = locked_launch_configurations(groups)

        def rotate_region(region: str) -> List[LaunchConfig]:
            doomed = plan_rotation(self.list_class(region, class_name), cfg.retain, locked)
            for config in doomed:
                self._delete_one(config, dry_run)
            return doomed

        result = fan_out(
            self.regions.list_regions(), rotate_region, self.config.get_max_workers()
        )
        if not result.ok:
            for region, error in result.errors.items():
                terminal.show_error_message(
                    f"Error rotating Launch Configurations in [{region}]",
                    aws_error_message(error),
                )
            raise RotationError(f"Error rotating [{class_name}] Launch Configurations!")

        return result.items

    def delete(
        self,
        search: str,
        region: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[LaunchConfig]:
        """Delete every launch configuration matching search."""
        configs = self.select_for_change(
            search,
            region,
            "Are you sure you want to delete these Launch Configurations?",
            dry_run,
            force,
        )
        for config in configs:
            self._delete_one(config, dry_run)

        terminal.information("Done!")
        return configs
