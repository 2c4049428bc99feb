"""Auto-scaling group listing, creation, updates and alarms.

Groups are built from an auto-scaling group class: one group per region
covered by the class availability zones, launched from the current
version of the class launch configuration. Groups carry ``Name`` (the
launch configuration in use) and ``Class`` tags; updates find the class
of a live group through its ``Class`` tag.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from cloudclass.classes.store import ClassNotFoundError
from cloudclass.core import terminal
from cloudclass.core.errors import InvalidRegionError, ResourceNotFoundError
from cloudclass.resources.alarms import AlarmManager, alarm_params
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.launch_configurations import LaunchConfigurationManager
from cloudclass.resources.models import AutoScaleGroup, ScalingActivity, Subnet, parse_timestamp, tag_value
from cloudclass.resources.scaling_policies import ScalingPolicyManager
from cloudclass.resources.subnets import SubnetManager, subnet_name, vpc_id_for, vpc_name_for


logger = logging.getLogger(__name__)


def marshal_group(group: Dict[str, Any], region: str, subnets: Sequence[Subnet] = ()) -> AutoScaleGroup:
    subnet_ids = group.get("VPCZoneIdentifier", "") or ""
    return AutoScaleGroup(
        name=group.get("AutoScalingGroupName", ""),
        class_name=tag_value(group.get("Tags"), "Class"),
        health_check_type=group.get("HealthCheckType", ""),
        health_check_grace_period=int(group.get("HealthCheckGracePeriod", 0) or 0),
        launch_config=group.get("LaunchConfigurationName", ""),
        load_balancers=list(group.get("LoadBalancerNames", [])),
        instance_count=len(group.get("Instances", [])),
        desired_capacity=int(group.get("DesiredCapacity", 0) or 0),
        min_size=int(group.get("MinSize", 0) or 0),
        max_size=int(group.get("MaxSize", 0) or 0),
        default_cooldown=int(group.get("DefaultCooldown", 0) or 0),
        availability_zones=list(group.get("AvailabilityZones", [])),
        subnet_id=subnet_ids,
        subnet_name=subnet_name(subnets, subnet_ids),
        vpc_id=vpc_id_for(subnets, subnet_ids),
        vpc_name=vpc_name_for(subnets, subnet_ids),
        region=region,
    )


def marshal_activity(activity: Dict[str, Any], region: str) -> ScalingActivity:
    return ScalingActivity(
        activity_id=activity.get("ActivityId", ""),
        auto_scaling_group_name=activity.get("AutoScalingGroupName", ""),
        cause=activity.get("Cause", ""),
        description=activity.get("Description", ""),
        details=activity.get("Details", ""),
        status_code=activity.get("StatusCode", ""),
        progress=int(activity.get("Progress", 0) or 0),
        start_time=parse_timestamp(activity.get("StartTime")),
        end_time=parse_timestamp(activity.get("EndTime")),
        region=region,
    )


def locked_launch_configurations(groups: Sequence[AutoScaleGroup]) -> Set[str]:
    """Launch configuration names in use by any group."""
    return {g.launch_config for g in groups if g.launch_config}


def group_tags(group_name: str, launch_config: str, class_name: str) -> List[Dict[str, Any]]:
    """Name and Class tags of a group, propagated to its instances."""
    return [
        {
            "Key": key,
            "Value": value,
            "PropagateAtLaunch": True,
            "ResourceId": group_name,
            "ResourceType": "auto-scaling-group",
        }
        for key, value in (("Name", launch_config), ("Class", class_name))
    ]


class AutoScaleGroupManager(RegionalResourceManager):
    """Lists and manages auto-scaling groups."""

    label = "AutoScaling Groups"

    def describe_region(self, region: str) -> List[AutoScaleGroup]:
        autoscaling = self.client("autoscaling", region)
        groups = self.paginate(
            autoscaling, "describe_auto_scaling_groups", "AutoScalingGroups"
        )

        subnets: List[Subnet] = []
        if any(g.get("VPCZoneIdentifier") for g in groups):
            subnets = self.peer(SubnetManager).describe_region(region)

        return [marshal_group(g, region, subnets) for g in groups]

    def _launch_config_name(self, region: str, class_name: str, version: int) -> str:
        name = self.peer(LaunchConfigurationManager).name_for(region, class_name, version)
        if not name:
            raise ResourceNotFoundError(
                f"Launch Configuration [{class_name}] version [{version}] is not available in [{region}]!"
            )
        terminal.information(
            f"Found Launch Configuration [{class_name}] version [{version}] in [{region}]"
        )
        return name

    def _zone_params(self, region: str, zones: Sequence[str], subnet_class: str) -> Dict[str, Any]:
        """AvailabilityZones and VPCZoneIdentifier for one region.

        Raises:
            InvalidRegionError: When a zone does not exist
        """
        subnets: List[Subnet] = []
        if subnet_class:
            subnets = self.peer(SubnetManager).describe_region(region)

        subnet_ids = []
        for zone in zones:
            if not self.regions.valid_zone(zone):
                raise InvalidRegionError(f"Availability Zone [{zone}] is Invalid!")
            terminal.information(f"Found Availability Zone [{zone}]!")
            subnet_ids.extend(
                s.subnet_id for s in subnets
                if s.class_name == subnet_class and s.availability_zone == zone
            )

        params: Dict[str, Any] = {"AvailabilityZones": list(zones)}
        if subnet_ids:
            params["VPCZoneIdentifier"] = ",".join(subnet_ids)
        return params

    def create(self, class_name: str, dry_run: bool = False) -> List[AutoScaleGroup]:
        """Create the groups of an auto-scaling group class.

        Returns:
            One record per region the class covers

        Raises:
            ClassNotFoundError: When a class is missing
            ResourceNotFoundError: When the launch configuration is missing
            InvalidRegionError: When an availability zone is invalid
            AwsApiError: When AWS rejects a request
        """
        self.announce_dry_run(dry_run)

        cfg = self.store.load("autoscalegroups", class_name)
        terminal.information(f"Found Autoscaling group class configuration for [{class_name}]")

        lc_cfg = self.store.load("launchconfigurations", cfg.launch_configuration_class)
        terminal.information(
            f"Found Launch Configuration class configuration for [{cfg.launch_configuration_class}]"
        )

        created = []
        for region, zones in self.regions.zones_by_region(cfg.availability_zones).items():
            lc_name = self._launch_config_name(
                region, cfg.launch_configuration_class, lc_cfg.version
            )

            params: Dict[str, Any] = {
                "AutoScalingGroupName": class_name,
                "LaunchConfigurationName": lc_name,
                "MinSize": cfg.min_size,
                "MaxSize": cfg.max_size,
                "DesiredCapacity": cfg.desired_capacity,
                "DefaultCooldown": cfg.default_cooldown,
                "HealthCheckType": cfg.health_check_type,
                "HealthCheckGracePeriod": cfg.health_check_grace_period,
                "Tags": group_tags(class_name, lc_name, class_name),
            }
            params.update(self._zone_params(region, zones, cfg.subnet_class))
            if cfg.load_balancer_names:
                params["LoadBalancerNames"] = list(cfg.load_balancer_names)
            if cfg.termination_policies:
                params["TerminationPolicies"] = list(cfg.termination_policies)

            if dry_run:
                terminal.print_params(params)
            else:
                autoscaling = self.client("autoscaling", region)
                self.call(autoscaling.create_auto_scaling_group, **params)
                logger.info("Created auto-scaling group %s in %s", class_name, region)
                terminal.delta(f"Created AutoScaling Group [{class_name}] in [{region}]!")

            created.append(AutoScaleGroup(
                name=class_name,
                class_name=class_name,
                launch_config=lc_name,
                region=region,
            ))

        self._create_class_alarms(cfg, created, dry_run)
        terminal.information("Done!")
        return created

    def update(
        self,
        search: str,
        version: Optional[int] = None,
        double: bool = False,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[AutoScaleGroup]:
        """Point matching groups at a launch configuration version.

        Args:
            search: Regular expression selecting groups
            version: Launch configuration version; the class version when None
            double: Double desired capacity and max size of the live group
            force: Skip the confirmation prompt
            dry_run: Print requests instead of sending them

        Returns:
            The groups updated
        """
        if double:
            terminal.information("--double flag is set, doubling desired and max counts!")

        groups = self.select_for_change(
            search,
            None,
            "Are you sure you want to update these AutoScaling Groups?",
            dry_run,
            force,
        )

        for group in groups:
            cfg = self.store.load("autoscalegroups", group.class_name)
            terminal.information(
                f"Found Autoscaling group class configuration for [{group.class_name}]"
            )

            if double:
                cfg.desired_capacity = group.desired_capacity * 2
                cfg.max_size = group.max_size * 2

            lc_cfg = self.store.load("launchconfigurations", cfg.launch_configuration_class)
            if version is not None:
                lc_cfg.version = version
                terminal.information(
                    f"Using Launch Configuration version [{version}] passed in as an argument."
                )

            lc_name = self._launch_config_name(
                group.region, cfg.launch_configuration_class, lc_cfg.version
            )

            zones = self.regions.zones_by_region(cfg.availability_zones).get(group.region)
            params: Dict[str, Any] = {
                "AutoScalingGroupName": group.name,
                "LaunchConfigurationName": lc_name,
                "MinSize": cfg.min_size,
                "MaxSize": cfg.max_size,
                "DesiredCapacity": cfg.desired_capacity,
                "DefaultCooldown": cfg.default_cooldown,
                "HealthCheckType": cfg.health_check_type,
                "HealthCheckGracePeriod": cfg.health_check_grace_period,
            }
            params.update(self._zone_params(
                group.region, zones or group.availability_zones, cfg.subnet_class
            ))
            if cfg.termination_policies:
                params["TerminationPolicies"] = list(cfg.termination_policies)

            if dry_run:
                terminal.print_params(params)
            else:
                autoscaling = self.client("autoscaling", group.region)
                self.call(autoscaling.update_auto_scaling_group, **params)
                self.call(
                    autoscaling.create_or_update_tags,
                    Tags=group_tags(group.name, lc_name, group.class_name),
                )
                logger.info("Updated auto-scaling group %s in %s", group.name, group.region)
                terminal.delta(f"Updated AutoScaling Group [{group.name}] in [{group.region}]!")

            self._create_class_alarms(cfg, [group], dry_run)

        terminal.information("Done!")
        return groups

    def delete(
        self,
        search: str,
        region: Optional[str] = None,
        force_delete: bool = False,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[AutoScaleGroup]:
        """Delete every group matching search.

        Args:
            force_delete: Also terminate the instances of each group
        """
        groups = self.select_for_change(
            search,
            region,
            "Are you sure you want to delete these AutoScaling Groups?",
            dry_run,
            force,
        )

        for group in groups:
            params = {"AutoScalingGroupName": group.name, "ForceDelete": force_delete}
            if dry_run:
                terminal.print_params(params)
                continue
            autoscaling = self.client("autoscaling", group.region)
            self.call(autoscaling.delete_auto_scaling_group, **params)
            logger.info("Deleted auto-scaling group %s in %s", group.name, group.region)
            terminal.delta(f"Deleted AutoScaling Group [{group.name}] in [{group.region}]!")

        terminal.information("Done!")
        return groups

    def _toggle_processes(
        self, operation: str, verb: str, past: str, search: str, region: Optional[str],
        force: bool, dry_run: bool,
    ) -> List[AutoScaleGroup]:
        groups = self.select_for_change(
            search,
            region,
            f"Are you sure you want to {verb} processes in these AutoScaling Groups?",
            dry_run,
            force,
        )

        for group in groups:
            if dry_run:
                terminal.print_params({"AutoScalingGroupName": group.name})
                continue
            autoscaling = self.client("autoscaling", group.region)
            self.call(getattr(autoscaling, operation), AutoScalingGroupName=group.name)
            logger.info("%s processes of %s in %s", past, group.name, group.region)
            terminal.delta(
                f"{past} processes in AutoScaling Group [{group.name}] in [{group.region}]!"
            )

        terminal.information("Done!")
        return groups

    def suspend_processes(
        self, search: str, region: Optional[str] = None, force: bool = False, dry_run: bool = False
    ) -> List[AutoScaleGroup]:
        """Suspend every scaling process of the matching groups."""
        return self._toggle_processes("suspend_processes", "suspend", "Suspended", search, region, force, dry_run)

    def resume_processes(
        self, search: str, region: Optional[str] = None, force: bool = False, dry_run: bool = False
    ) -> List[AutoScaleGroup]:
        """Resume every scaling process of the matching groups."""
        return self._toggle_processes("resume_processes", "resume", "Resumed", search, region, force, dry_run)

    def scaling_activities(self, search: str = "", latest: bool = False) -> List[ScalingActivity]:
        """Scaling activities of the matching groups.

        Args:
            search: Regular expression selecting groups
            latest: Only the most recent activity of each group

        Raises:
            AwsApiError: When an activity list cannot be read
        """
        activities = []
        for group in self.select(search):
            autoscaling = self.client("autoscaling", group.region)
            params: Dict[str, Any] = {"AutoScalingGroupName": group.name}
            if latest:
                params["MaxRecords"] = 1
            response = self.call(autoscaling.describe_scaling_activities, **params)
            activities.extend(
                marshal_activity(activity, group.region)
                for activity in response.get("Activities", [])
            )
        return activities

    def create_alarms(
        self, alarm_class: str, search: str, force: bool = False, dry_run: bool = False
    ) -> List[AutoScaleGroup]:
        """Put an alarm class on every group matching search."""
        cfg = self.store.load("alarms", alarm_class)
        terminal.information(f"Found CloudWatch Alarm class configuration for [{alarm_class}]")

        groups = self.select_for_change(
            search,
            None,
            "Are you sure you want to create this alarm in these AutoScaling Groups?",
            dry_run,
            force,
        )
        self.put_group_alarms(alarm_class, cfg, groups, dry_run)

        terminal.information("Done!")
        return groups

    def _create_class_alarms(self, cfg: Any, groups: Sequence[AutoScaleGroup], dry_run: bool) -> None:
        if not cfg.alarms:
            return

        terminal.delta("Creating CloudWatch Alarms.")
        for alarm in cfg.alarms:
            alarm_cfg = self.store.load("alarms", alarm)
            terminal.information(f"Found CloudWatch Alarm class configuration for [{alarm}]")
            self.put_group_alarms(alarm, alarm_cfg, groups, dry_run)

    def put_group_alarms(
        self, alarm_class: str, cfg: Any, groups: Sequence[AutoScaleGroup], dry_run: bool = False
    ) -> List[Dict[str, Any]]:
        """Put one alarm per group, named ``<group>-<alarm class>``.

        Alarm actions naming a scaling policy class create that policy on
        the group first and use its ARN; other actions pass through.

        Returns:
            The PutMetricAlarm parameters sent for each group
        """
        sent = []
        for group in groups:
            terminal.delta(
                f"Adding Alarm [{alarm_class}] to AutoScale Group [{group.name}] in [{group.region}]"
            )

            actions = []
            for action in cfg.alarm_actions:
                try:
                    policy_cfg = self.store.load("scalingpolicies", action)
                except ClassNotFoundError:
                    actions.append(action)
                    continue
                terminal.information(f"Found Scaling Policy class configuration for [{action}]")
                actions.append(
                    self.peer(ScalingPolicyManager).create(action, policy_cfg, group, dry_run)
                )

            params = alarm_params(
                f"{group.name}-{alarm_class}",
                cfg,
                actions,
                [{"Name": "AutoScalingGroupName", "Value": group.name}],
            )
            self.peer(AlarmManager).put(group.region, params, dry_run)
            sent.append(params)
        return sent
