"""Region and availability zone catalogue.

Regions come from EC2 DescribeRegions in the home region, narrowed by the
configured allow-list and ignore-list.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from .aws_client import AWSClientManager
from .config import Configuration
from .errors import InvalidRegionError
from .fanout import fan_out


logger = logging.getLogger(__name__)


def region_for_zone(zone: str) -> str:
    """Region name of an availability zone (us-east-1a -> us-east-1)."""
    return zone[:-1] if zone[-1:].isalpha() else zone


class RegionCatalog:
    """Lists and validates regions and availability zones."""

    def __init__(self, aws_client: AWSClientManager, config: Configuration) -> None:
        self.aws_client = aws_client
        self.config = config
        self._all_regions: Optional[List[str]] = None
        self._zones: Optional[Dict[str, List[str]]] = None

    def _describe_regions(self) -> List[str]:
        if self._all_regions is None:
            ec2 = self.aws_client.get_client("ec2", self.config.get_home_region())
            response = ec2.describe_regions()
            self._all_regions = sorted(
                r["RegionName"] for r in response.get("Regions", [])
            )
            logger.debug("Discovered %d regions", len(self._all_regions))
        return self._all_regions

    def list_regions(self, include_ignored: bool = False) -> List[str]:
        """List regions to operate on.

        Args:
            include_ignored: Keep regions from aws.ignored_regions

        Returns:
            Sorted region names
        """
        regions = self._describe_regions()

        allowed = self.config.get_regions()
        if allowed:
            regions = [r for r in regions if r in allowed]

        if not include_ignored:
            ignored = set(self.config.get_ignored_regions())
            regions = [r for r in regions if r not in ignored]

        return regions

    def valid_region(self, region: str) -> bool:
        """Check region against every region AWS reports."""
        return region in self._describe_regions()

    def require_region(self, region: str) -> None:
        """Raise InvalidRegionError unless region is valid."""
        if not self.valid_region(region):
            raise InvalidRegionError(f"Region [{region}] is Invalid!")

    def _describe_zones(self, region: str) -> List[Tuple[str, str]]:
        ec2 = self.aws_client.get_client("ec2", region)
        response = ec2.describe_availability_zones()
        return [
            (region, z["ZoneName"]) for z in response.get("AvailabilityZones", [])
        ]

    def get_zones(self) -> Dict[str, List[str]]:
        """Availability zones by region, across every listed region.

        Raises:
            InvalidRegionError: When any region could not be described
        """
        if self._zones is None:
            result = fan_out(
                self.list_regions(include_ignored=True),
                self._describe_zones,
                self.config.get_max_workers(),
            )
            if not result.ok:
                raise InvalidRegionError("Error gathering availability zone list")

            zones: Dict[str, List[str]] = {}
            for region, zone in result.items:
                zones.setdefault(region, []).append(zone)
            self._zones = zones
        return self._zones

    def valid_zone(self, zone: str) -> bool:
        """Check an availability zone name exists."""
        return zone in self.get_zones().get(region_for_zone(zone), [])

    @staticmethod
    def zones_by_region(zones: Iterable[str]) -> "OrderedDict[str, List[str]]":
        """Group availability zones by their region, keeping input order."""
        grouped: "OrderedDict[str, List[str]]" = OrderedDict()
        for zone in zones:
            grouped.setdefault(region_for_zone(zone), []).append(zone)
        return grouped
