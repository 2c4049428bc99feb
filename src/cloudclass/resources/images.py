"""Machine image listing, creation, propagation and rotation.

Images of a class carry a ``Class`` tag. Creating one snapshots the
instance named by the image class, copies the result to every
propagate region, then rotates old images of the class away. Images
still referenced by a launch configuration are never rotated.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

from cloudclass.core import terminal
from cloudclass.core.errors import (
    AwsApiError,
    ResourceNotFoundError,
    RotationError,
    aws_error_message,
)
from cloudclass.core.fanout import fan_out
from cloudclass.resources.base import RegionalResourceManager, plan_rotation
from cloudclass.resources.instances import InstanceManager
from cloudclass.resources.models import Image, parse_timestamp, tag_value


logger = logging.getLogger(__name__)


def marshal_image(image: Dict[str, Any], region: str) -> Image:
    return Image(
        name=image.get("Name", ""),
        class_name=tag_value(image.get("Tags"), "Class"),
        image_id=image.get("ImageId", ""),
        state=image.get("State", ""),
        root_device_type=image.get("RootDeviceType", ""),
        snapshot_ids=[
            mapping["Ebs"]["SnapshotId"]
            for mapping in image.get("BlockDeviceMappings", [])
            if mapping.get("Ebs", {}).get("SnapshotId")
        ],
        creation_time=parse_timestamp(image.get("CreationDate")),
        region=region,
    )


def image_name(images: Sequence[Image], image_id: str) -> str:
    """Name of an image by ID, empty when unknown."""
    for image in images:
        if image.image_id == image_id:
            return image.name
    return ""


def image_name_for(class_name: str, when: Optional[datetime] = None) -> str:
    """Name of a new image of a class, stamped with the creation time."""
    when = when or datetime.now(timezone.utc)
    return f"{class_name}-{when.strftime('%Y%m%d%H%M%S')}"


class ImageManager(RegionalResourceManager):
    """Lists, creates, rotates and deletes self-owned machine images."""

    label = "Images"

    def describe_region(self, region: str) -> List[Image]:
        ec2 = self.client("ec2", region)
        response = ec2.describe_images(Owners=["self"])
        return [marshal_image(image, region) for image in response.get("Images", [])]

    def get_latest_by_tag(self, region: str, key: str, value: str) -> Image:
        """Newest available image in region carrying tag key=value.

        Raises:
            ResourceNotFoundError: When no image carries the tag
        """
        ec2 = self.client("ec2", region)
        response = ec2.describe_images(
            Owners=["self"],
            Filters=[
                {"Name": f"tag:{key}", "Values": [value]},
                {"Name": "state", "Values": ["available"]},
            ],
        )
        images = [marshal_image(image, region) for image in response.get("Images", [])]
        if not images:
            raise ResourceNotFoundError(
                f"No Image found with [{key}] of [{value}] in [{region}]!"
            )
        return max(
            images, key=lambda i: i.creation_time.timestamp() if i.creation_time else 0
        )

    def _tag_image(self, region: str, image_id: str, class_name: str, name: str) -> None:
        ec2 = self.client("ec2", region)
        self.call(
            ec2.create_tags,
            Resources=[image_id],
            Tags=[
                {"Key": "Name", "Value": name},
                {"Key": "Class", "Value": class_name},
            ],
        )

    def create(self, class_name: str, dry_run: bool = False) -> List[Image]:
        """Create an image of a class and propagate it.

        Args:
            class_name: Image class to build
            dry_run: Issue DryRun requests only

        Returns:
            The new image in each region it now exists in

        Raises:
            ResourceNotFoundError: When the class instance cannot be found
            AwsApiError: When an AWS call fails
        """
        self.announce_dry_run(dry_run)

        cfg = self.store.load("images", class_name)
        terminal.information(f"Found Image class configuration for [{class_name}]")

        if not cfg.instance_id:
            raise ResourceNotFoundError(
                f"Image class [{class_name}] does not name an instance to image!"
            )

        matches = [
            i for i in self.peer(InstanceManager).select(cfg.instance_id)
            if i.instance_id == cfg.instance_id
        ]
        if not matches:
            raise ResourceNotFoundError(
                f"Instance [{cfg.instance_id}] could not be found!"
            )
        source = matches[0]
        terminal.information(
            f"Found Instance [{source.instance_id}] in [{source.region}]"
        )

        name = image_name_for(class_name)
        ec2 = self.client("ec2", source.region)
        response = self.call_ec2(
            ec2.create_image,
            dry_run,
            InstanceId=source.instance_id,
            Name=name,
            Description=f"{class_name} image",
            NoReboot=True,
        )
        if dry_run:
            terminal.print_params(
                {"InstanceId": source.instance_id, "Name": name, "Regions": cfg.propagate_regions}
            )
            return []

        image_id = response["ImageId"]
        terminal.delta(f"Created Image [{image_id}] named [{name}] in [{source.region}]!")
        terminal.information("Waiting for the new Image to become available...")
        ec2.get_waiter("image_available").wait(ImageIds=[image_id])
        self._tag_image(source.region, image_id, class_name, name)

        created = [Image(name=name, class_name=class_name, image_id=image_id,
                         state="available", region=source.region)]

        if cfg.propagate:
            for region in cfg.propagate_regions:
                if region == source.region:
                    continue
                self.regions.require_region(region)
                target = self.client("ec2", region)
                copy = self.call(
                    target.copy_image,
                    SourceRegion=source.region,
                    SourceImageId=image_id,
                    Name=name,
                    Description=f"{class_name} image",
                )
                self._tag_image(region, copy["ImageId"], class_name, name)
                terminal.delta(
                    f"Copied Image [{image_id}] to [{copy['ImageId']}] in [{region}]!"
                )
                created.append(Image(name=name, class_name=class_name,
                                     image_id=copy["ImageId"], state="pending",
                                     region=region))

        if cfg.retain >= 1:
            self.rotate(class_name, cfg)

        return created

    def _launch_configurations(self, error_type: type, message: str) -> List[Any]:
        from cloudclass.resources.launch_configurations import LaunchConfigurationManager

        configs, errors = self.peer(LaunchConfigurationManager).list()
        if errors:
            raise error_type(message)
        return configs

    def _deregister(self, image: Image, dry_run: bool, locked_snapshots: Set[str]) -> None:
        ec2 = self.client("ec2", image.region)
        self.call_ec2(ec2.deregister_image, dry_run, ImageId=image.image_id)
        for snapshot_id in image.snapshot_ids:
            if snapshot_id in locked_snapshots:
                terminal.information(
                    f"Keeping Snapshot [{snapshot_id}] of [{image.image_id}], "
                    "a Launch Configuration still maps it."
                )
                continue
            self.call_ec2(ec2.delete_snapshot, dry_run, SnapshotId=snapshot_id)
        if not dry_run:
            logger.info("Deregistered image %s in %s", image.image_id, image.region)
            terminal.delta(
                f"Deleted Image [{image.image_id}] named [{image.name}] in [{image.region}]!"
            )

    def rotate(self, class_name: str, cfg: Any = None, dry_run: bool = False) -> List[Image]:
        """Deregister old images of a class beyond its retain count.

        Returns:
            The images rotated away

        Raises:
            RotationError: When any region fails
        """
        from cloudclass.resources.launch_configurations import (
            locked_image_ids,
            locked_snapshot_ids,
        )

        if cfg is None:
            cfg = self.store.load("images", class_name)

        launch_configs = self._launch_configurations(
            RotationError,
            f"Error gathering Launch Configurations to rotate [{class_name}] Images!",
        )
        locked = locked_image_ids(launch_configs)
        locked_snapshots = locked_snapshot_ids(launch_configs)

        def rotate_region(region: str) -> List[Image]:
            images = [i for i in self.describe_region(region) if i.class_name == class_name]
            doomed = plan_rotation(images, cfg.retain, locked, lambda i: i.image_id)
            for image in doomed:
                self._deregister(image, dry_run, locked_snapshots)
            return doomed

        result = fan_out(
            self.regions.list_regions(), rotate_region, self.config.get_max_workers()
        )
        if not result.ok:
            for region, error in result.errors.items():
                terminal.show_error_message(
                    f"Error rotating Images in [{region}]", aws_error_message(error)
                )
            raise RotationError(f"Error rotating Images of class [{class_name}]!")

        return result.items

    def delete(
        self,
        search: str,
        region: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[Image]:
        """Deregister every image matching search, with its snapshots."""
        images = self.select_for_change(
            search,
            region,
            "Are you sure you want to delete these Images?",
            dry_run,
            force,
        )
        locked_snapshots: Set[str] = set()
        if images:
            from cloudclass.resources.launch_configurations import locked_snapshot_ids

            locked_snapshots = locked_snapshot_ids(self._launch_configurations(
                AwsApiError, "Error gathering Launch Configurations before deleting Images!"
            ))
        for image in images:
            self._deregister(image, dry_run, locked_snapshots)

        terminal.information("Done!")
        return images
