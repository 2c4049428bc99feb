"""Unit tests for auto-scaling group management."""

import pytest
from unittest.mock import patch

from cloudclass.classes.definitions import (
    AlarmClass,
    AutoscaleGroupClass,
    LaunchConfigurationClass,
    ScalingPolicyClass,
)
from cloudclass.core.errors import InvalidRegionError, ResourceNotFoundError
from cloudclass.resources.autoscale_groups import (
    AutoScaleGroupManager,
    group_tags,
    locked_launch_configurations,
    marshal_group,
)
from cloudclass.resources.models import AutoScaleGroup, Subnet


POLICY_ARN = (
    "arn:aws:autoscaling:us-east-1:123456789012:scalingPolicy:"
    "0b1c2d3e:autoScalingGroupName/web:policyName/scaleUp"
)


def live_group(name="web", class_name="web", lc="web-v2", desired=2, max_size=4, **extra):
    group = {
        "AutoScalingGroupName": name,
        "LaunchConfigurationName": lc,
        "DesiredCapacity": desired,
        "MinSize": 1,
        "MaxSize": max_size,
        "AvailabilityZones": ["us-east-1a"],
        "Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}],
        "Tags": [{"Key": "Class", "Value": class_name}],
    }
    group.update(extra)
    return group


class TestHelpers:
    """Test cases for group helpers."""

    def test_marshal_group(self):
        """Test subnet and VPC names are resolved from the zone identifier."""
        subnets = [
            Subnet(name="private-a", subnet_id="subnet-a", vpc_id="vpc-1", vpc_name="main"),
            Subnet(name="private-b", subnet_id="subnet-b", vpc_id="vpc-1", vpc_name="main"),
        ]

        group = marshal_group(
            live_group(VPCZoneIdentifier="subnet-a,subnet-b"), "us-east-1", subnets
        )

        assert group.class_name == "web"
        assert group.instance_count == 2
        assert group.subnet_id == "subnet-a,subnet-b"
        assert group.subnet_name == "private-a, private-b"
        assert group.vpc_name == "main"

    def test_group_tags(self):
        """Test Name and Class tags propagate at launch."""
        tags = group_tags("web", "web-v3", "web")

        assert tags[0]["Key"] == "Name"
        assert tags[0]["Value"] == "web-v3"
        assert tags[1]["Key"] == "Class"
        assert tags[1]["Value"] == "web"
        assert all(t["PropagateAtLaunch"] and t["ResourceId"] == "web" for t in tags)

    def test_locked_launch_configurations(self):
        """Test every launch configuration in use is locked."""
        groups = [AutoScaleGroup(launch_config="web-v2"), AutoScaleGroup(launch_config="")]

        assert locked_launch_configurations(groups) == {"web-v2"}


class GroupTestBase:
    """Class fixtures shared by group tests."""

    def add_classes(self, aws, **overrides):
        values = dict(
            launch_configuration_class="web",
            availability_zones=["us-east-1a", "us-east-1b"],
            desired_capacity=2,
            min_size=1,
            max_size=4,
            default_cooldown=300,
            health_check_type="EC2",
            health_check_grace_period=120,
            termination_policies=["OldestInstance"],
        )
        values.update(overrides)
        cfg = aws.add_class("autoscalegroups", "web", AutoscaleGroupClass(**values))
        aws.add_class("launchconfigurations", "web", LaunchConfigurationClass(version=3))
        return cfg

    def launch_configs_exist(self, aws, region, *names):
        def describe(LaunchConfigurationNames):
            if LaunchConfigurationNames[0] in names:
                return {"LaunchConfigurations": [{"LaunchConfigurationName": LaunchConfigurationNames[0]}]}
            return {"LaunchConfigurations": []}

        aws.client("autoscaling", region).describe_launch_configurations.side_effect = describe


class TestCreate(GroupTestBase):
    """Test cases for group creation."""

    def test_create(self, aws):
        """Test one group per region, launched from the class version."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        autoscaling = aws.client("autoscaling", "us-east-1")

        created = aws.manager(AutoScaleGroupManager).create("web")

        assert [(g.name, g.region, g.launch_config) for g in created] == [("web", "us-east-1", "web-v3")]
        params = autoscaling.create_auto_scaling_group.call_args.kwargs
        assert params["AutoScalingGroupName"] == "web"
        assert params["LaunchConfigurationName"] == "web-v3"
        assert params["AvailabilityZones"] == ["us-east-1a", "us-east-1b"]
        assert params["TerminationPolicies"] == ["OldestInstance"]
        assert "VPCZoneIdentifier" not in params
        assert "LoadBalancerNames" not in params
        assert {"Key": "Class", "Value": "web", "PropagateAtLaunch": True,
                "ResourceId": "web", "ResourceType": "auto-scaling-group"} in params["Tags"]

    def test_create_with_subnets(self, aws):
        """Test class subnets in the chosen zones become the zone identifier."""
        self.add_classes(aws, subnet_class="private", load_balancer_names=["web-elb"])
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        aws.pages("ec2", "us-east-1", "describe_subnets", {"Subnets": [
            {"SubnetId": "subnet-a", "AvailabilityZone": "us-east-1a",
             "Tags": [{"Key": "Class", "Value": "private"}]},
            {"SubnetId": "subnet-b", "AvailabilityZone": "us-east-1b",
             "Tags": [{"Key": "Class", "Value": "private"}]},
            {"SubnetId": "subnet-c", "AvailabilityZone": "us-east-1c",
             "Tags": [{"Key": "Class", "Value": "private"}]},
            {"SubnetId": "subnet-p", "AvailabilityZone": "us-east-1a",
             "Tags": [{"Key": "Class", "Value": "public"}]},
        ]})

        aws.manager(AutoScaleGroupManager).create("web")

        params = aws.client("autoscaling", "us-east-1").create_auto_scaling_group.call_args.kwargs
        assert params["VPCZoneIdentifier"] == "subnet-a,subnet-b"
        assert params["LoadBalancerNames"] == ["web-elb"]

    def test_create_missing_launch_configuration(self, aws):
        """Test a missing class version stops creation."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1")

        with pytest.raises(ResourceNotFoundError) as exc_info:
            aws.manager(AutoScaleGroupManager).create("web")

        assert "Launch Configuration [web] version [3] is not available in [us-east-1]!" in str(exc_info.value)

    def test_create_invalid_zone(self, aws):
        """Test an unknown availability zone is rejected."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        aws.regions.valid_zone.side_effect = lambda zone: zone != "us-east-1b"

        with pytest.raises(InvalidRegionError) as exc_info:
            aws.manager(AutoScaleGroupManager).create("web")

        assert "Availability Zone [us-east-1b] is Invalid!" in str(exc_info.value)
        aws.client("autoscaling", "us-east-1").create_auto_scaling_group.assert_not_called()

    def test_create_dry_run(self, aws, capsys):
        """Test a dry run prints each region's request."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v3")

        aws.manager(AutoScaleGroupManager).create("web", dry_run=True)

        aws.client("autoscaling", "us-east-1").create_auto_scaling_group.assert_not_called()
        assert "AutoScalingGroupName: web" in capsys.readouterr().out

    @patch.object(AutoScaleGroupManager, "put_group_alarms")
    def test_create_adds_class_alarms(self, mock_put, aws):
        """Test every class alarm is put on the new groups."""
        self.add_classes(aws, alarms=["cpuHigh"])
        alarm = aws.add_class("alarms", "cpuHigh", AlarmClass())
        self.launch_configs_exist(aws, "us-east-1", "web-v3")

        created = aws.manager(AutoScaleGroupManager).create("web")

        mock_put.assert_called_once_with("cpuHigh", alarm, created, False)


class TestUpdate(GroupTestBase):
    """Test cases for group updates."""

    def test_update(self, aws):
        """Test the group moves to the class version and is retagged."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group()]})
        autoscaling = aws.client("autoscaling", "us-east-1")

        updated = aws.manager(AutoScaleGroupManager).update("web")

        assert [g.name for g in updated] == ["web"]
        params = autoscaling.update_auto_scaling_group.call_args.kwargs
        assert params["LaunchConfigurationName"] == "web-v3"
        assert params["DesiredCapacity"] == 2
        assert params["AvailabilityZones"] == ["us-east-1a", "us-east-1b"]
        tags = autoscaling.create_or_update_tags.call_args.kwargs["Tags"]
        assert tags[0]["Value"] == "web-v3"

    def test_update_double_and_version(self, aws):
        """Test --double scales the live counts and a version overrides the class."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v1")
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group(desired=3, max_size=5)]})

        aws.manager(AutoScaleGroupManager).update("web", version=1, double=True)

        params = aws.client("autoscaling", "us-east-1").update_auto_scaling_group.call_args.kwargs
        assert params["LaunchConfigurationName"] == "web-v1"
        assert params["DesiredCapacity"] == 6
        assert params["MaxSize"] == 10

    def test_update_outside_class_zones(self, aws):
        """Test a group in a region the class does not cover keeps its zones."""
        self.add_classes(aws, availability_zones=["us-west-2a"])
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group()]})

        aws.manager(AutoScaleGroupManager).update("web")

        params = aws.client("autoscaling", "us-east-1").update_auto_scaling_group.call_args.kwargs
        assert params["AvailabilityZones"] == ["us-east-1a"]

    def test_update_dry_run(self, aws):
        """Test a dry run changes nothing."""
        self.add_classes(aws)
        self.launch_configs_exist(aws, "us-east-1", "web-v3")
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group()]})

        aws.manager(AutoScaleGroupManager).update("web", dry_run=True)

        autoscaling = aws.client("autoscaling", "us-east-1")
        autoscaling.update_auto_scaling_group.assert_not_called()
        autoscaling.create_or_update_tags.assert_not_called()


class TestLifecycle(GroupTestBase):
    """Test cases for delete, processes and activities."""

    def setup_groups(self, aws):
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group(), live_group(name="api", class_name="api")]})
        return aws.client("autoscaling", "us-east-1")

    def test_delete_force(self, aws):
        """Test ForceDelete is passed through."""
        autoscaling = self.setup_groups(aws)

        aws.manager(AutoScaleGroupManager).delete("^api$", force_delete=True)

        autoscaling.delete_auto_scaling_group.assert_called_once_with(
            AutoScalingGroupName="api", ForceDelete=True
        )

    def test_suspend_and_resume(self, aws):
        """Test processes are suspended and resumed per group."""
        autoscaling = self.setup_groups(aws)
        manager = aws.manager(AutoScaleGroupManager)

        manager.suspend_processes("^web$")
        manager.resume_processes("^web$")

        autoscaling.suspend_processes.assert_called_once_with(AutoScalingGroupName="web")
        autoscaling.resume_processes.assert_called_once_with(AutoScalingGroupName="web")

    def test_scaling_activities_latest(self, aws):
        """Test only the newest activity is asked for."""
        autoscaling = self.setup_groups(aws)
        autoscaling.describe_scaling_activities.return_value = {"Activities": [
            {"ActivityId": "a-1", "AutoScalingGroupName": "web", "StatusCode": "Successful",
             "Progress": 100}
        ]}

        activities = aws.manager(AutoScaleGroupManager).scaling_activities("^web$", latest=True)

        assert [a.status_code for a in activities] == ["Successful"]
        autoscaling.describe_scaling_activities.assert_called_once_with(
            AutoScalingGroupName="web", MaxRecords=1
        )


class TestGroupAlarms(GroupTestBase):
    """Test cases for alarms on groups."""

    def setup_method(self):
        """Set up test fixtures."""
        self.group = AutoScaleGroup(name="web", region="us-east-1")
        self.alarm = AlarmClass(
            alarm_actions=["scaleUp", "arn:aws:sns:us-east-1:123456789012:alerts"],
            metric_name="CPUUtilization",
            threshold=75.0,
            comparison_operator="GreaterThanThreshold",
        )

    def test_put_group_alarms(self, aws):
        """Test policy actions are created and other actions pass through."""
        aws.add_class("scalingpolicies", "scaleUp", ScalingPolicyClass(scaling_adjustment=1))
        autoscaling = aws.client("autoscaling", "us-east-1")
        autoscaling.put_scaling_policy.return_value = {"PolicyARN": POLICY_ARN}
        cloudwatch = aws.client("cloudwatch", "us-east-1")

        sent = aws.manager(AutoScaleGroupManager).put_group_alarms("cpuHigh", self.alarm, [self.group])

        assert sent[0]["AlarmName"] == "web-cpuHigh"
        assert sent[0]["AlarmActions"] == [POLICY_ARN, "arn:aws:sns:us-east-1:123456789012:alerts"]
        assert sent[0]["Dimensions"] == [{"Name": "AutoScalingGroupName", "Value": "web"}]
        cloudwatch.put_metric_alarm.assert_called_once_with(**sent[0])

    def test_put_group_alarms_dry_run(self, aws):
        """Test a dry run uses placeholder policy ARNs and sends nothing."""
        aws.add_class("scalingpolicies", "scaleUp", ScalingPolicyClass())

        sent = aws.manager(AutoScaleGroupManager).put_group_alarms(
            "cpuHigh", self.alarm, [self.group], dry_run=True
        )

        assert "policyName/scaleUp" in sent[0]["AlarmActions"][0]
        assert ("cloudwatch", "us-east-1") not in aws.clients
        assert ("autoscaling", "us-east-1") not in aws.clients

    def test_create_alarms(self, aws):
        """Test an alarm class is put on every selected group."""
        aws.add_class("alarms", "cpuHigh", self.alarm)
        aws.pages("autoscaling", "us-east-1", "describe_auto_scaling_groups",
                  {"AutoScalingGroups": [live_group(), live_group(name="api", class_name="api")]})

        groups = aws.manager(AutoScaleGroupManager).create_alarms("cpuHigh", "", dry_run=False)

        cloudwatch = aws.client("cloudwatch", "us-east-1")
        names = [c.kwargs["AlarmName"] for c in cloudwatch.put_metric_alarm.call_args_list]
        assert len(groups) == 2
        assert names == ["web-cpuHigh", "api-cpuHigh"]
