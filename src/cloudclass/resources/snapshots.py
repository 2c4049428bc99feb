"""EBS snapshot listing and latest-by-class lookup."""

from typing import Any, Dict, List

from cloudclass.core.errors import ResourceNotFoundError
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import Snapshot, parse_timestamp, tag_value


def marshal_snapshot(snapshot: Dict[str, Any], region: str) -> Snapshot:
    return Snapshot(
        name=tag_value(snapshot.get("Tags"), "Name"),
        class_name=tag_value(snapshot.get("Tags"), "Class"),
        snapshot_id=snapshot.get("SnapshotId", ""),
        volume_id=snapshot.get("VolumeId", ""),
        state=snapshot.get("State", ""),
        progress=snapshot.get("Progress", ""),
        volume_size=int(snapshot.get("VolumeSize", 0) or 0),
        creation_time=parse_timestamp(snapshot.get("StartTime")),
        region=region,
    )


class SnapshotManager(RegionalResourceManager):
    """Lists self-owned snapshots and finds the newest of a class."""

    label = "Snapshots"

    def describe_region(self, region: str) -> List[Snapshot]:
        ec2 = self.client("ec2", region)
        return [
            marshal_snapshot(snapshot, region)
            for snapshot in self.paginate(
                ec2, "describe_snapshots", "Snapshots", OwnerIds=["self"]
            )
        ]

    def get_latest_by_tag(self, region: str, key: str, value: str) -> Snapshot:
        """Newest completed snapshot in region carrying tag key=value.

        Raises:
            ResourceNotFoundError: When no snapshot carries the tag
        """
        ec2 = self.client("ec2", region)
        response = ec2.describe_snapshots(
            OwnerIds=["self"],
            Filters=[
                {"Name": f"tag:{key}", "Values": [value]},
                {"Name": "status", "Values": ["completed"]},
            ],
        )
        snapshots = [
            marshal_snapshot(s, region) for s in response.get("Snapshots", [])
        ]
        if not snapshots:
            raise ResourceNotFoundError(
                f"No Snapshot found with [{key}] of [{value}] in [{region}]!"
            )
        return max(snapshots, key=lambda s: s.creation_time.timestamp() if s.creation_time else 0)
