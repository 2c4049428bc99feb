"""Unit tests for instance termination and Elastic IP management."""

import pytest
from botocore.exceptions import ClientError

from cloudclass.core.errors import CloudClassError, InvalidRegionError
from cloudclass.resources.addresses import AddressManager
from cloudclass.resources.instances import InstanceManager, instance_name
from cloudclass.resources.models import Instance


def reservations(*instances):
    return {"Reservations": [{"Instances": list(instances)}]}


def dry_run_error(operation):
    return ClientError(
        {"Error": {"Code": "DryRunOperation", "Message": "Request would have succeeded"}},
        operation,
    )


class TestInstances:
    """Test cases for InstanceManager."""

    def setup_instances(self, aws):
        aws.pages("ec2", "us-east-1", "describe_instances", reservations(
            {"InstanceId": "i-1", "State": {"Name": "running"},
             "Placement": {"AvailabilityZone": "us-east-1a"},
             "Tags": [{"Key": "Name", "Value": "web-1"}, {"Key": "Class", "Value": "prod"}]},
            {"InstanceId": "i-2", "State": {"Name": "stopped"},
             "Tags": [{"Key": "Name", "Value": "db-1"}]},
        ))

    def test_describe_region(self, aws):
        """Test reservations are flattened into instance records."""
        self.setup_instances(aws)

        instances = aws.manager(InstanceManager).describe_region("us-east-1")

        assert [i.instance_id for i in instances] == ["i-1", "i-2"]
        assert instances[0].class_name == "prod"
        assert instances[0].availability_zone == "us-east-1a"

    def test_terminate(self, aws):
        """Test each matching instance is terminated."""
        self.setup_instances(aws)
        ec2 = aws.client("ec2", "us-east-1")

        terminated = aws.manager(InstanceManager).terminate("web")

        assert [i.instance_id for i in terminated] == ["i-1"]
        ec2.terminate_instances.assert_called_once_with(DryRun=False, InstanceIds=["i-1"])

    def test_terminate_dry_run(self, aws):
        """Test a dry run sends DryRun requests and accepts DryRunOperation."""
        self.setup_instances(aws)
        ec2 = aws.client("ec2", "us-east-1")
        ec2.terminate_instances.side_effect = dry_run_error("TerminateInstances")

        terminated = aws.manager(InstanceManager).terminate("i-", dry_run=True)

        assert len(terminated) == 2
        assert ec2.terminate_instances.call_count == 2
        assert all(c.kwargs["DryRun"] for c in ec2.terminate_instances.call_args_list)

    def test_instance_name(self):
        """Test instance names fall back to the ID."""
        instances = [Instance(name="web", instance_id="i-1"), Instance(instance_id="i-2")]

        assert instance_name(instances, "i-1") == "web"
        assert instance_name(instances, "i-2") == "i-2"
        assert instance_name(instances, "i-3") == "i-3"


class TestAddresses:
    """Test cases for AddressManager."""

    def setup_addresses(self, aws):
        ec2 = aws.client("ec2", "us-east-1")
        ec2.describe_addresses.return_value = {"Addresses": [
            {"AllocationId": "eipalloc-1", "PublicIp": "203.0.113.10", "Domain": "vpc",
             "InstanceId": "i-1"},
            {"AllocationId": "eipalloc-2", "PublicIp": "203.0.113.11", "Domain": "vpc"},
            {"PublicIp": "203.0.113.12", "Domain": "standard"},
        ]}
        aws.pages("ec2", "us-east-1", "describe_instances", reservations(
            {"InstanceId": "i-1", "Tags": [{"Key": "Name", "Value": "web-1"}]}
        ))
        return ec2

    def test_describe_region_attachment(self, aws):
        """Test attached addresses are in use and named after their instance."""
        self.setup_addresses(aws)

        addresses = aws.manager(AddressManager).describe_region("us-east-1")

        assert addresses[0].status == "in-use"
        assert addresses[0].attachment == "web-1"
        assert addresses[1].status == "available"
        assert addresses[1].attachment == ""

    def test_describe_region_skips_instances_when_unattached(self, aws):
        """Test instances are only read when something is attached."""
        ec2 = aws.client("ec2", "us-east-1")
        ec2.describe_addresses.return_value = {"Addresses": [{"PublicIp": "203.0.113.1"}]}

        aws.manager(AddressManager).describe_region("us-east-1")

        ec2.get_paginator.assert_not_called()

    def test_list_available(self, aws):
        """Test the available filter drops attached addresses."""
        self.setup_addresses(aws)

        addresses, errors = aws.manager(AddressManager).list(available=True)

        assert errors == []
        assert [a.public_ip for a in addresses] == ["203.0.113.11", "203.0.113.12"]

    @pytest.mark.parametrize("domain,sent", [("vpc", "vpc"), ("classic", "standard")])
    def test_create(self, aws, domain, sent):
        """Test allocation in each domain."""
        ec2 = aws.client("ec2", "us-east-1")
        ec2.allocate_address.return_value = {
            "AllocationId": "eipalloc-9", "PublicIp": "198.51.100.9", "Domain": sent
        }

        address = aws.manager(AddressManager).create("us-east-1", domain)

        assert address.public_ip == "198.51.100.9"
        assert address.status == "available"
        ec2.allocate_address.assert_called_once_with(DryRun=False, Domain=sent)

    def test_create_dry_run(self, aws):
        """Test a dry run allocates nothing."""
        ec2 = aws.client("ec2", "us-east-1")
        ec2.allocate_address.side_effect = dry_run_error("AllocateAddress")

        assert aws.manager(AddressManager).create("us-east-1", dry_run=True) is None

    def test_create_invalid_domain(self, aws):
        """Test unknown domains are rejected before calling AWS."""
        with pytest.raises(CloudClassError) as exc_info:
            aws.manager(AddressManager).create("us-east-1", "other")

        assert str(exc_info.value) == "Domain should be either [vpc] or [classic]."
        assert ("ec2", "us-east-1") not in aws.clients

    def test_create_invalid_region(self, aws):
        """Test unknown regions are rejected."""
        with pytest.raises(InvalidRegionError):
            aws.manager(AddressManager).create("mars-north-1")

    def test_delete(self, aws):
        """Test release by allocation ID, or by public IP without one."""
        ec2 = self.setup_addresses(aws)

        released = aws.manager(AddressManager).delete("203.0.113.1[12]")

        assert len(released) == 2
        assert ec2.release_address.call_args_list[0].kwargs == {
            "DryRun": False, "AllocationId": "eipalloc-2"
        }
        assert ec2.release_address.call_args_list[1].kwargs == {
            "DryRun": False, "PublicIp": "203.0.113.12"
        }
