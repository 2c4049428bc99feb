"""Elastic IP address listing, allocation and release."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cloudclass.core import terminal
from cloudclass.core.errors import CloudClassError
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.instances import InstanceManager, instance_name
from cloudclass.resources.models import Address, Instance


logger = logging.getLogger(__name__)


#: Accepted domain names and the value AllocateAddress expects for each
DOMAINS = {"vpc": "vpc", "classic": "standard"}


def marshal_address(address: Dict[str, Any], region: str, instances: Sequence[Instance]) -> Address:
    instance_id = address.get("InstanceId", "")
    record = Address(
        allocation_id=address.get("AllocationId", ""),
        public_ip=address.get("PublicIp", ""),
        private_ip=address.get("PrivateIpAddress", ""),
        domain=address.get("Domain", ""),
        instance_id=instance_id,
        network_interface_id=address.get("NetworkInterfaceId", ""),
        network_interface_owner_id=address.get("NetworkInterfaceOwnerId", ""),
        region=region,
    )
    if instance_id:
        record.status = "in-use"
        record.attachment = instance_name(instances, instance_id)
    else:
        record.status = "available"
    return record


class AddressManager(RegionalResourceManager):
    """Lists, allocates and releases Elastic IP addresses."""

    label = "Addresses"

    def describe_region(self, region: str) -> List[Address]:
        ec2 = self.client("ec2", region)
        response = ec2.describe_addresses()
        addresses = response.get("Addresses", [])

        instances: List[Instance] = []
        if any(a.get("InstanceId") for a in addresses):
            instances = self.peer(InstanceManager).describe_region(region)

        return [marshal_address(address, region, instances) for address in addresses]

    def list(self, search: str = "", available: bool = False) -> Tuple[List[Address], List[Exception]]:
        """Addresses in every region that match search.

        Args:
            search: Regular expression matched against every text field
            available: Keep only addresses not attached to an instance
        """
        addresses, errors = super().list(search)
        if available:
            addresses = [a for a in addresses if a.status == "available"]
        return addresses, errors

    def create(self, region: str, domain: str = "vpc", dry_run: bool = False) -> Optional[Address]:
        """Allocate a new address.

        Args:
            region: Region to allocate in
            domain: ``vpc`` or ``classic``
            dry_run: Send a DryRun request

        Returns:
            The allocated address, None on a dry run

        Raises:
            InvalidRegionError: When region is not valid
            CloudClassError: When domain is not recognised
            AwsApiError: When the allocation fails
        """
        self.announce_dry_run(dry_run)
        self.regions.require_region(region)

        if domain not in DOMAINS:
            raise CloudClassError("Domain should be either [vpc] or [classic].")

        ec2 = self.client("ec2", region)
        response = self.call_ec2(ec2.allocate_address, dry_run, Domain=DOMAINS[domain])
        if response is None:
            terminal.information("Dry run succeeded, no Address was allocated.")
            return None

        address = Address(
            allocation_id=response.get("AllocationId", ""),
            public_ip=response.get("PublicIp", ""),
            domain=response.get("Domain", ""),
            status="available",
            region=region,
        )
        logger.info("Allocated address %s in %s", address.public_ip, region)
        terminal.delta(f"Created Address [{address.public_ip}] in [{region}]!")
        return address

    def delete(
        self,
        search: str,
        region: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[Address]:
        """Release every address matching search."""
        addresses = self.select_for_change(
            search,
            region,
            "Are you sure you want to delete these Addresses?",
            dry_run,
            force,
        )

        for address in addresses:
            ec2 = self.client("ec2", address.region)
            if address.allocation_id:
                params = {"AllocationId": address.allocation_id}
            else:
                params = {"PublicIp": address.public_ip}
            self.call_ec2(ec2.release_address, dry_run, **params)
            if not dry_run:
                logger.info("Released address %s in %s", address.public_ip, address.region)
                terminal.delta(
                    f"Deleted Address [{address.allocation_id or address.public_ip}] in [{address.region}]!"
                )

        terminal.information("Done!")
        return addresses
